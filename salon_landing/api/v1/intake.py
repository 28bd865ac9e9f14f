"""Intake requests: public submission plus back-office review."""

import uuid

from arq.connections import ArqRedis, create_pool
from fastapi import APIRouter, Query, status

from salon_landing.api.deps import AdminAuth, Objects, Session
from salon_landing.api.errors import to_http
from salon_landing.core.config import get_settings
from salon_landing.core.errors import ProvisioningError
from salon_landing.models.intake import (
    IntakeCreate,
    IntakeRead,
    IntakeRequest,
    IntakeStatus,
    IntakeStatusUpdate,
    PaymentConfirmation,
)
from salon_landing.services import intake as intake_service
from salon_landing.workers.main import _redis_settings

router = APIRouter(prefix="/intake-requests", tags=["intake"])


def _to_read(request: IntakeRequest) -> IntakeRead:
    return IntakeRead(
        id=request.id,
        business_name=request.business_name,
        owner_name=request.owner_name,
        email=request.email,
        phone=request.phone,
        plan=request.plan,
        status=request.status,
        staging_key=request.staging_key,
        linked_tenant_id=request.linked_tenant_id,
        linked_account_id=request.linked_account_id,
        last_error=request.last_error,
        notes=request.notes,
        profile=request.tenant_profile(),
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


async def _enqueue_provisioning(request_id: uuid.UUID) -> None:
    redis: ArqRedis = await create_pool(_redis_settings())
    try:
        await redis.enqueue_job("provision_request", str(request_id))
    finally:
        await redis.aclose()


@router.post("", response_model=IntakeRead, status_code=status.HTTP_201_CREATED)
async def submit_intake_request(body: IntakeCreate, session: Session) -> IntakeRead:
    """Onboarding form submission. Unauthenticated."""
    request = await intake_service.create_intake_request(session, body)
    return _to_read(request)


@router.get("", response_model=list[IntakeRead], dependencies=[AdminAuth])
async def list_intake_requests(
    session: Session,
    status_filter: IntakeStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[IntakeRead]:
    requests = await intake_service.list_intake_requests(session, status_filter, limit, offset)
    return [_to_read(r) for r in requests]


@router.get("/{request_id}", response_model=IntakeRead, dependencies=[AdminAuth])
async def get_intake_request(request_id: uuid.UUID, session: Session) -> IntakeRead:
    try:
        request = await intake_service.get_intake_request(session, request_id)
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return _to_read(request)


@router.patch("/{request_id}/status", response_model=IntakeRead, dependencies=[AdminAuth])
async def update_intake_status(
    request_id: uuid.UUID,
    body: IntakeStatusUpdate,
    session: Session,
    object_store: Objects,
) -> IntakeRead:
    try:
        request = await intake_service.update_status(
            session, request_id, body.status, object_store, notes=body.notes
        )
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return _to_read(request)


@router.post(
    "/{request_id}/payment-confirmed",
    response_model=IntakeRead,
    dependencies=[AdminAuth],
)
async def confirm_payment(
    request_id: uuid.UUID,
    body: PaymentConfirmation,
    session: Session,
) -> IntakeRead:
    """Payment trigger. Optionally queues provisioning right away."""
    try:
        request = await intake_service.confirm_payment(
            session, request_id, body.payment_reference
        )
    except ProvisioningError as exc:
        raise to_http(exc) from exc

    if get_settings().auto_provision_on_payment:
        await _enqueue_provisioning(request.id)
    return _to_read(request)
