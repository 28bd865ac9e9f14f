"""Login handles, temporary secrets and owner accounts."""

from __future__ import annotations

import logging
import re
import secrets
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from salon_landing.core.errors import (
    AccountNotFoundError,
    AllocationExhaustedError,
    DuplicateEmailError,
    ValidationError,
)
from salon_landing.models.account import Account, AccountStatus
from salon_landing.models.base import utcnow
from salon_landing.services.identifiers import MAX_ATTEMPTS, candidate_names, strip_accents

logger = logging.getLogger(__name__)

HANDLE_MAX_LENGTH = 30
SECRET_LENGTH = 8

# No 0/O/o, 1/I/l: secrets get read off an email and typed by hand
_UPPER = "ABCDEFGHJKLMNPQRSTUVWXYZ"
_LOWER = "abcdefghijkmnpqrstuvwxyz"
_DIGITS = "23456789"
SECRET_ALPHABET = _UPPER + _LOWER + _DIGITS

_random = secrets.SystemRandom()


def derive_handle(full_name: str) -> str:
    """Login handle from a person's name.

    "Ana" -> "ana", "María García" -> "maria.garcia",
    "José Alberto Pérez López" -> "jose.lopez"
    """
    if not full_name or not isinstance(full_name, str):
        raise ValidationError("Full name is required")

    cleaned = re.sub(r"[^a-z0-9\s]", "", strip_accents(full_name.strip()))
    tokens = cleaned.split()
    if not tokens:
        raise ValidationError(f"'{full_name}' does not contain a usable name")

    handle = tokens[0] if len(tokens) == 1 else f"{tokens[0]}.{tokens[-1]}"
    return handle[:HANDLE_MAX_LENGTH]


def generate_secret(length: int = SECRET_LENGTH) -> str:
    """Human-typable temporary secret with at least one upper, lower and digit."""
    chars = [
        secrets.choice(_UPPER),
        secrets.choice(_LOWER),
        secrets.choice(_DIGITS),
    ]
    chars += [secrets.choice(SECRET_ALPHABET) for _ in range(length - len(chars))]
    _random.shuffle(chars)
    return "".join(chars)


class CredentialIssuer:
    """Issues unique handles and creates owner accounts."""

    def __init__(self, session_factory: sessionmaker, max_attempts: int = MAX_ATTEMPTS) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts

    async def handle_taken(self, handle: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(Account.id).where(Account.handle == handle))
            return result.first() is not None

    async def unique_handle(self, base: str) -> str:
        for candidate in candidate_names(base, self._max_attempts, HANDLE_MAX_LENGTH):
            if not await self.handle_taken(candidate):
                return candidate
        raise AllocationExhaustedError(base, self._max_attempts + 1)

    async def email_taken(self, email: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(select(Account.id).where(Account.email == email))
            return result.first() is not None

    async def account_for_request(self, intake_request_id: uuid.UUID) -> Account | None:
        """Account an earlier, interrupted attempt created for the request."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Account).where(Account.intake_request_id == intake_request_id)
            )
            return result.scalars().first()

    async def reissue_secret(
        self, account_id: uuid.UUID, password_hash: str, tenant_identifier: str
    ) -> Account:
        async with self._session_factory() as session:
            account = await session.get(Account, account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            account.password_hash = password_hash
            account.tenant_identifier = tenant_identifier
            account.must_change_password = True
            account.updated_at = utcnow()
            session.add(account)
            await session.commit()
            await session.refresh(account)
        logger.info("Reissued temporary secret for account %s", account.id)
        return account

    async def issue_account(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        phone: str = "",
        plan: str = "basic",
        tenant_identifier: str | None = None,
        intake_request_id: uuid.UUID | None = None,
    ) -> Account:
        """Create the Account row. The caller hashes the secret beforehand."""
        email = email.strip().lower()
        if await self.email_taken(email):
            raise DuplicateEmailError(email)

        base = derive_handle(full_name)
        # A concurrent issuer can take the chosen handle before our insert lands
        for _ in range(3):
            handle = await self.unique_handle(base)
            account = Account(
                handle=handle,
                email=email,
                password_hash=password_hash,
                full_name=full_name.strip(),
                phone=phone,
                plan=plan,
                status=AccountStatus.ACTIVE,
                tenant_identifier=tenant_identifier,
                intake_request_id=intake_request_id,
            )
            async with self._session_factory() as session:
                session.add(account)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    if await self.email_taken(email):
                        raise DuplicateEmailError(email) from None
                    logger.warning("Handle %s taken concurrently, retrying", handle)
                    continue
                await session.refresh(account)
            logger.info("Issued account %s (%s)", account.id, account.handle)
            return account
        raise AllocationExhaustedError(base, 3)
