"""Staged media uploaded by the onboarding form before a tenant exists."""

from __future__ import annotations

import logging
import re
import secrets
import time
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from salon_landing.core.config import get_settings
from salon_landing.core.errors import (
    ExternalServiceError,
    StagedAssetSetNotFoundError,
    ValidationError,
)
from salon_landing.models.base import utcnow
from salon_landing.models.staging import AssetCategory, StagedAssetSet, StagingStatus
from salon_landing.services.object_store import ObjectStore

logger = logging.getLogger(__name__)

STAGING_KEY_PATTERN = re.compile(r"^salon_\d+_\d+$")


def new_staging_key() -> str:
    """``salon_{epoch millis}_{random}``, unique per onboarding session."""
    return f"salon_{int(time.time() * 1000)}_{secrets.randbelow(10_000)}"


def validate_staging_key(staging_key: str) -> str:
    if not isinstance(staging_key, str) or not STAGING_KEY_PATTERN.match(staging_key):
        raise ValidationError(f"Invalid staging key '{staging_key}'")
    return staging_key


def staging_prefix(staging_key: str) -> str:
    return f"{get_settings().staging_folder}/{staging_key}"


async def create_staged_set(
    session: AsyncSession, intake_request_id: uuid.UUID | None = None
) -> StagedAssetSet:
    staged = StagedAssetSet(staging_key=new_staging_key(), intake_request_id=intake_request_id)
    session.add(staged)
    await session.commit()
    await session.refresh(staged)
    return staged


async def get_staged_set(session: AsyncSession, staging_key: str) -> StagedAssetSet:
    staged = await session.get(StagedAssetSet, staging_key)
    if staged is None:
        raise StagedAssetSetNotFoundError(staging_key)
    return staged


async def register_asset(
    session: AsyncSession, staging_key: str, category: AssetCategory, url: str
) -> StagedAssetSet:
    """Record an uploaded URL under ``staging_key``, creating the set on first use."""
    validate_staging_key(staging_key)
    staged = await session.get(StagedAssetSet, staging_key)
    if staged is None:
        staged = StagedAssetSet(staging_key=staging_key)
    elif staged.status != StagingStatus.PENDING:
        raise ValidationError(f"Staged assets '{staging_key}' are already {staged.status}")

    staged.append(category, url)
    staged.updated_at = utcnow()
    session.add(staged)
    await session.commit()
    await session.refresh(staged)
    return staged


async def reject_staged_set(
    session: AsyncSession, staging_key: str, object_store: ObjectStore
) -> StagedAssetSet | None:
    """Mark the set rejected and delete its staged objects (best effort)."""
    staged = await session.get(StagedAssetSet, staging_key)
    if staged is None:
        return None

    try:
        await object_store.delete_prefix(staging_prefix(staging_key))
    except ExternalServiceError as exc:
        logger.warning("Could not delete staged objects of %s: %s", staging_key, exc)

    staged.status = StagingStatus.REJECTED
    staged.updated_at = utcnow()
    session.add(staged)
    await session.commit()
    await session.refresh(staged)
    return staged
