"""Intake request lifecycle: submission, review transitions, payment."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from salon_landing.core.errors import (
    ConflictError,
    IntakeRequestNotFoundError,
    InvalidTransitionError,
    ProvisioningError,
    ValidationError,
)
from salon_landing.models.base import utcnow
from salon_landing.models.intake import IntakeCreate, IntakeRequest, IntakeStatus
from salon_landing.models.staging import StagedAssetSet
from salon_landing.services.object_store import ObjectStore
from salon_landing.services.staging import reject_staged_set

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[IntakeStatus, frozenset[IntakeStatus]] = {
    IntakeStatus.PENDING: frozenset({IntakeStatus.CONTACTED, IntakeStatus.REJECTED}),
    IntakeStatus.CONTACTED: frozenset(
        {IntakeStatus.APPROVED_PENDING_PAYMENT, IntakeStatus.REJECTED}
    ),
    IntakeStatus.APPROVED_PENDING_PAYMENT: frozenset(
        {IntakeStatus.PAYMENT_CONFIRMED, IntakeStatus.REJECTED}
    ),
    IntakeStatus.PAYMENT_CONFIRMED: frozenset(
        {IntakeStatus.PROVISIONING, IntakeStatus.REJECTED}
    ),
    # Failed attempts fall back to payment_confirmed
    IntakeStatus.PROVISIONING: frozenset(
        {IntakeStatus.PROVISIONED, IntakeStatus.PAYMENT_CONFIRMED, IntakeStatus.REJECTED}
    ),
    IntakeStatus.PROVISIONED: frozenset(),
    IntakeStatus.REJECTED: frozenset(),
}

# Only the provisioning pipeline moves requests into these
PIPELINE_STATUSES = frozenset({IntakeStatus.PROVISIONING, IntakeStatus.PROVISIONED})


def can_transition(current: IntakeStatus, target: IntakeStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: IntakeStatus, target: IntakeStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


async def create_intake_request(session: AsyncSession, body: IntakeCreate) -> IntakeRequest:
    request = IntakeRequest(
        business_name=body.business_name.strip(),
        owner_name=body.owner_name.strip(),
        email=str(body.email).lower(),
        phone=body.phone,
        plan=body.plan,
        staging_key=body.staging_key,
        profile=body.profile.model_dump_json(),
        notes=body.notes,
    )
    session.add(request)

    # Link the staged uploads made before submission
    if body.staging_key:
        staged = await session.get(StagedAssetSet, body.staging_key)
        if staged is not None:
            staged.intake_request_id = request.id
            session.add(staged)

    await session.commit()
    await session.refresh(request)
    logger.info("Intake request %s submitted for '%s'", request.id, request.business_name)
    return request


async def get_intake_request(session: AsyncSession, request_id: uuid.UUID) -> IntakeRequest:
    request = await session.get(IntakeRequest, request_id)
    if request is None:
        raise IntakeRequestNotFoundError(request_id)
    return request


async def list_intake_requests(
    session: AsyncSession,
    status: IntakeStatus | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[IntakeRequest]:
    stmt = select(IntakeRequest)
    if status is not None:
        stmt = stmt.where(IntakeRequest.status == status)
    stmt = (
        stmt.order_by(IntakeRequest.created_at.desc())  # type: ignore[union-attr]
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def compare_and_set_status(
    session: AsyncSession,
    request_id: uuid.UUID,
    expected: IntakeStatus,
    target: IntakeStatus,
    *conditions,
    **values,
) -> bool:
    """Move the request from ``expected`` to ``target`` in one conditional UPDATE.

    Extra ``conditions`` narrow the WHERE clause; ``values`` are written along
    with the status. Returns False when no row matched, i.e. somebody else
    changed the request first. Commits either way.
    """
    stmt = (
        update(IntakeRequest)
        .where(
            IntakeRequest.id == request_id,
            IntakeRequest.status == expected,
            *conditions,
        )
        .values(status=target, updated_at=utcnow(), **values)
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount == 1


async def _lost_race(
    session: AsyncSession, request: IntakeRequest, target: IntakeStatus
) -> ProvisioningError:
    await session.refresh(request)
    if not can_transition(request.status, target):
        return InvalidTransitionError(request.status, target)
    return ConflictError(f"Intake request {request.id} changed concurrently; retry")


async def update_status(
    session: AsyncSession,
    request_id: uuid.UUID,
    target: IntakeStatus,
    object_store: ObjectStore,
    notes: str | None = None,
) -> IntakeRequest:
    """Admin-driven transition. Rejection also discards the staged media.

    Rejecting a request that is being provisioned is allowed; the pipeline
    notices at its next step and stops without linking the tenant.
    """
    request = await get_intake_request(session, request_id)
    if target in PIPELINE_STATUSES:
        raise ValidationError(f"Status '{target}' is set by provisioning only")
    ensure_transition(request.status, target)

    values = {"notes": notes} if notes is not None else {}
    if not await compare_and_set_status(session, request.id, request.status, target, **values):
        raise await _lost_race(session, request, target)
    await session.refresh(request)

    if target == IntakeStatus.REJECTED and request.staging_key:
        await reject_staged_set(session, request.staging_key, object_store)

    logger.info("Intake request %s moved to %s", request.id, target)
    return request


async def confirm_payment(
    session: AsyncSession, request_id: uuid.UUID, payment_reference: str
) -> IntakeRequest:
    request = await get_intake_request(session, request_id)
    ensure_transition(request.status, IntakeStatus.PAYMENT_CONFIRMED)

    confirmed = await compare_and_set_status(
        session,
        request.id,
        request.status,
        IntakeStatus.PAYMENT_CONFIRMED,
        payment_reference=payment_reference,
    )
    if not confirmed:
        raise await _lost_race(session, request, IntakeStatus.PAYMENT_CONFIRMED)
    await session.refresh(request)
    logger.info("Payment %s confirmed for intake request %s", payment_reference, request.id)
    return request
