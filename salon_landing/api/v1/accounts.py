"""Back-office view of issued accounts."""

import uuid

from fastapi import APIRouter, Query

from salon_landing.api.deps import AdminAuth, Session
from salon_landing.api.errors import to_http
from salon_landing.core.errors import ProvisioningError
from salon_landing.models.account import AccountRead, AccountStatus, AccountStatusUpdate
from salon_landing.services import accounts as account_service

router = APIRouter(prefix="/accounts", tags=["accounts"], dependencies=[AdminAuth])


@router.get("", response_model=list[AccountRead])
async def list_accounts(
    session: Session,
    status_filter: AccountStatus | None = Query(default=None, alias="status"),
    plan: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> list[AccountRead]:
    accounts = await account_service.list_accounts(session, status_filter, plan, limit, offset)
    return [AccountRead.model_validate(a) for a in accounts]


@router.get("/{account_id}", response_model=AccountRead)
async def get_account(account_id: uuid.UUID, session: Session) -> AccountRead:
    try:
        account = await account_service.get_account(session, account_id)
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return AccountRead.model_validate(account)


@router.patch("/{account_id}/status", response_model=AccountRead)
async def update_account_status(
    account_id: uuid.UUID,
    body: AccountStatusUpdate,
    session: Session,
) -> AccountRead:
    """Suspend, cancel or reactivate an account. The reason is kept on the record."""
    try:
        account = await account_service.update_account_status(
            session, account_id, body.status, reason=body.reason
        )
    except ProvisioningError as exc:
        raise to_http(exc) from exc
    return AccountRead.model_validate(account)
