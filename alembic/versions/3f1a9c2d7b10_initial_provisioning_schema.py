"""initial provisioning schema

Revision ID: 3f1a9c2d7b10
Revises:
Create Date: 2026-10-17 09:12:40.118204

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7b10'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "intake_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("business_name", sa.String(255), nullable=False),
        sa.Column("owner_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("plan", sa.String(50), nullable=False),
        sa.Column("profile", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("staging_key", sa.String(100), nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("reserved_tenant_id", sa.String(30), nullable=True),
        sa.Column("linked_tenant_id", sa.String(30), nullable=True),
        sa.Column("linked_account_id", sa.Uuid(), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("last_error", sa.String(2000), nullable=True),
        sa.Column("notes", sa.String(2000), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_intake_requests_email", "intake_requests", ["email"])
    op.create_index("ix_intake_requests_staging_key", "intake_requests", ["staging_key"])
    op.create_index("ix_intake_requests_status", "intake_requests", ["status"])
    op.create_index("ix_intake_requests_linked_tenant_id", "intake_requests", ["linked_tenant_id"])

    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("handle", sa.String(30), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column("plan", sa.String(50), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("status_reason", sa.String(500), nullable=True),
        sa.Column("must_change_password", sa.Boolean(), nullable=False),
        sa.Column("email_verified", sa.Boolean(), nullable=False),
        sa.Column("tenant_identifier", sa.String(30), nullable=True),
        sa.Column(
            "intake_request_id",
            sa.Uuid(),
            sa.ForeignKey("intake_requests.id"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_accounts_handle", "accounts", ["handle"], unique=True)
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)
    op.create_index("ix_accounts_tenant_identifier", "accounts", ["tenant_identifier"])
    op.create_index("ix_accounts_intake_request_id", "accounts", ["intake_request_id"])

    op.create_table(
        "staged_asset_sets",
        sa.Column("staging_key", sa.String(100), primary_key=True),
        sa.Column("intake_request_id", sa.Uuid(), nullable=True),
        sa.Column("logo", sa.String(2048), nullable=False),
        sa.Column("services", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("products", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("staff", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("gallery", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("status", sa.String(32), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_staged_asset_sets_intake_request_id", "staged_asset_sets", ["intake_request_id"]
    )

    op.create_table(
        "documents",
        sa.Column("path", sa.String(1024), primary_key=True),
        sa.Column("collection", sa.String(1024), nullable=False),
        sa.Column("data", sa.Text(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_documents_collection", "documents", ["collection"])


def downgrade() -> None:
    op.drop_table("documents")
    op.drop_table("staged_asset_sets")
    op.drop_table("accounts")
    op.drop_table("intake_requests")
