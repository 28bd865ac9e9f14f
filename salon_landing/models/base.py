"""Shared base fields and id/time helpers for all models."""

import secrets
import string
import uuid
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel

_DOC_ID_ALPHABET = string.ascii_letters + string.digits


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utcnow_iso() -> str:
    """UTC timestamp as stored inside tenant documents."""
    return datetime.now(timezone.utc).isoformat()


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def new_document_id() -> str:
    """20-char auto id for documents created with ``add``."""
    return "".join(secrets.choice(_DOC_ID_ALPHABET) for _ in range(20))


class TimestampMixin(SQLModel):
    """Created / updated timestamps injected into every table."""

    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
