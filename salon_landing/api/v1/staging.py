"""Staging area for media uploaded during onboarding (public)."""

import json

from fastapi import APIRouter, status
from pydantic import BaseModel

from salon_landing.api.deps import Session
from salon_landing.api.errors import to_http
from salon_landing.core.errors import ProvisioningError
from salon_landing.models.staging import StagedAssetCreate, StagedAssetSet, StagedAssetSetRead
from salon_landing.services import staging as staging_service

router = APIRouter(prefix="/staging", tags=["staging"])


class StagingKeyResponse(BaseModel):
    staging_key: str
    folder: str


def _to_read(staged: StagedAssetSet) -> StagedAssetSetRead:
    return StagedAssetSetRead(
        staging_key=staged.staging_key,
        intake_request_id=staged.intake_request_id,
        logo=staged.logo,
        services=json.loads(staged.services),
        products=json.loads(staged.products),
        staff=json.loads(staged.staff),
        gallery=json.loads(staged.gallery),
        status=staged.status,
        created_at=staged.created_at,
        updated_at=staged.updated_at,
    )


@router.post("", response_model=StagingKeyResponse, status_code=status.HTTP_201_CREATED)
async def open_staging_area(session: Session) -> StagingKeyResponse:
    """Issue a staging key; uploads go under ``folder`` on the object store."""
    staged = await staging_service.create_staged_set(session)
    return StagingKeyResponse(
        staging_key=staged.staging_key,
        folder=staging_service.staging_prefix(staged.staging_key),
    )


@router.post(
    "/{staging_key}/assets",
    response_model=StagedAssetSetRead,
    status_code=status.HTTP_201_CREATED,
)
async def register_staged_asset(
    staging_key: str,
    body: StagedAssetCreate,
    session: Session,
) -> StagedAssetSetRead:
    try:
        staged = await staging_service.register_asset(session, staging_key, body.category, body.url)
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return _to_read(staged)


@router.get("/{staging_key}", response_model=StagedAssetSetRead)
async def get_staged_assets(staging_key: str, session: Session) -> StagedAssetSetRead:
    try:
        staged = await staging_service.get_staged_set(session, staging_key)
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return _to_read(staged)
