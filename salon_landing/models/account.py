"""Account model: the login principal created for a provisioned request."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlmodel import Field, SQLModel

from salon_landing.models.base import TimestampMixin, new_uuid


class AccountStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELED = "canceled"
    PENDING_ACTIVATION = "pending_activation"


class Account(TimestampMixin, SQLModel, table=True):
    __tablename__ = "accounts"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    handle: str = Field(max_length=30, unique=True, nullable=False, index=True)
    email: str = Field(max_length=320, unique=True, nullable=False, index=True)
    password_hash: str = Field(nullable=False)
    full_name: str = Field(default="", max_length=255)
    phone: str = Field(default="", max_length=50)
    plan: str = Field(default="basic", max_length=50)
    status: AccountStatus = Field(default=AccountStatus.ACTIVE)
    status_reason: str | None = Field(default=None, max_length=500)
    must_change_password: bool = Field(default=True)
    email_verified: bool = Field(default=False)

    tenant_identifier: str | None = Field(default=None, max_length=30, index=True)
    intake_request_id: uuid.UUID | None = Field(
        default=None, foreign_key="intake_requests.id", nullable=True, index=True,
    )


# ── Pydantic schemas ─────────────────────────────────────────

class AccountRead(SQLModel):
    id: uuid.UUID
    handle: str
    email: str
    full_name: str
    phone: str
    plan: str
    status: AccountStatus
    status_reason: str | None
    must_change_password: bool
    tenant_identifier: str | None
    intake_request_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class AccountStatusUpdate(SQLModel):
    status: AccountStatus
    reason: str | None = Field(default=None, max_length=500)
