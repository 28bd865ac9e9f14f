"""Back-office account management: listing, lookup and status changes."""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from salon_landing.core.errors import AccountNotFoundError, ValidationError
from salon_landing.models.account import Account, AccountStatus
from salon_landing.models.base import utcnow

logger = logging.getLogger(__name__)

# pending_activation is only ever set at issuance
ADMIN_STATUSES = frozenset(
    {AccountStatus.ACTIVE, AccountStatus.SUSPENDED, AccountStatus.CANCELED}
)


async def list_accounts(
    session: AsyncSession,
    status: AccountStatus | None = None,
    plan: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Account]:
    stmt = select(Account)
    if status is not None:
        stmt = stmt.where(Account.status == status)
    if plan:
        stmt = stmt.where(Account.plan == plan)
    stmt = (
        stmt.order_by(Account.created_at.desc())  # type: ignore[union-attr]
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_account(session: AsyncSession, account_id: uuid.UUID) -> Account:
    account = await session.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)
    return account


async def update_account_status(
    session: AsyncSession,
    account_id: uuid.UUID,
    status: AccountStatus,
    reason: str | None = None,
) -> Account:
    if status not in ADMIN_STATUSES:
        raise ValidationError(f"Account status '{status}' cannot be set by an admin")

    account = await get_account(session, account_id)
    previous = account.status
    account.status = status
    account.status_reason = reason
    account.updated_at = utcnow()
    session.add(account)
    await session.commit()
    await session.refresh(account)
    logger.info(
        "Account %s moved from %s to %s (reason: %s)",
        account.handle, previous, status, reason or "-",
    )
    return account
