"""Provisioning orchestrator: turns a paid intake request into a live salon.

Steps run strictly in sequence:

1. claim a tenant identifier (or reuse the one an earlier attempt claimed)
2. promote staged media into the tenant's prefix
3. materialize the tenant's documents
4. issue the owner account
5. link the request to tenant and account, mark it provisioned
6. email the owner their credentials (failure is only logged)

Entering the pipeline is a conditional ``payment_confirmed -> provisioning``
update, so only one run holds a request at a time. A request left in
``provisioning`` by a crashed run is resumed only when its tenant marker was
flagged stalled, or when the caller forces it.

Between steps the run re-reads the request and stops if it was moved out of
``provisioning`` (an admin rejected it). A failure in steps 1-5 moves the
request back to ``payment_confirmed`` unless it was rejected or linked in the
meantime, records ``last_error`` and raises ``ProvisioningFailedError``.
Whatever was already committed stays in place; retrying the same request
converges on one tenant.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from salon_landing.core.config import get_settings
from salon_landing.core.documents import DocumentStore
from salon_landing.core.errors import (
    AlreadyProvisionedError,
    ExternalServiceError,
    IntakeRequestNotFoundError,
    InvalidTransitionError,
    ProvisioningError,
    ProvisioningFailedError,
    ProvisioningInProgressError,
    RequestWithdrawnError,
)
from salon_landing.core.security import hash_password
from salon_landing.models.account import Account
from salon_landing.models.base import utcnow
from salon_landing.models.intake import IntakeRequest, IntakeStatus
from salon_landing.models.staging import StagedAssetSet, StagingStatus
from salon_landing.services import layout
from salon_landing.services.assets import AssetPromoter, PromotedAssetSet
from salon_landing.services.credentials import CredentialIssuer, generate_secret
from salon_landing.services.identifiers import MAX_ATTEMPTS, IdentifierAllocator
from salon_landing.services.intake import compare_and_set_status
from salon_landing.services.materializer import TenantContact, TenantMaterializer
from salon_landing.services.notifier import Notifier, ResendNotifier, credentials_message
from salon_landing.services.object_store import CloudinaryObjectStore, ObjectStore

logger = logging.getLogger(__name__)

_UNLINKED = IntakeRequest.linked_tenant_id.is_(None)  # type: ignore[union-attr]


class ProvisioningStep(StrEnum):
    RESERVE_IDENTIFIER = "reserve_identifier"
    PROMOTE_ASSETS = "promote_assets"
    MATERIALIZE = "materialize"
    ISSUE_ACCOUNT = "issue_account"
    LINK_REQUEST = "link_request"


@dataclass
class ProvisioningResult:
    request_id: uuid.UUID
    tenant_identifier: str
    account_id: uuid.UUID
    account_handle: str
    temporary_secret: str = field(repr=False)
    staff_count: int = 0
    services_created: int = 0
    products_created: int = 0
    assets_degraded: bool = False
    materialization_failures: list[str] = field(default_factory=list)
    notified: bool = False


class ProvisioningOrchestrator:
    def __init__(
        self,
        session_factory: sessionmaker,
        store: DocumentStore,
        object_store: ObjectStore,
        notifier: Notifier,
        max_attempts: int = MAX_ATTEMPTS,
    ) -> None:
        self._session_factory = session_factory
        self._store = store
        self.allocator = IdentifierAllocator(store, max_attempts)
        self.promoter = AssetPromoter(object_store)
        self.materializer = TenantMaterializer(store)
        self.issuer = CredentialIssuer(session_factory, max_attempts)
        self._notifier = notifier

    @classmethod
    def from_settings(cls, session_factory: sessionmaker) -> ProvisioningOrchestrator:
        return cls(
            session_factory=session_factory,
            store=DocumentStore(session_factory),
            object_store=CloudinaryObjectStore.from_settings(),
            notifier=ResendNotifier.from_settings(),
        )

    async def provision(
        self, intake_request_id: uuid.UUID, force: bool = False
    ) -> ProvisioningResult:
        """Run the whole pipeline for one intake request.

        ``force`` takes over a request stuck in ``provisioning`` even when its
        marker has not been flagged stalled yet.

        Raises:
            IntakeRequestNotFoundError: no such request.
            AlreadyProvisionedError: the request is already linked to a tenant.
            ProvisioningInProgressError: another run holds the request.
            InvalidTransitionError: the request is not ready for provisioning.
            ProvisioningFailedError: a step failed; see ``.step`` / ``.cause``.
        """
        request = await self._start(intake_request_id, force)
        profile = request.tenant_profile()

        step = ProvisioningStep.RESERVE_IDENTIFIER
        identifier = request.reserved_tenant_id
        try:
            identifier = await self._claim_identifier(request)

            step = ProvisioningStep.PROMOTE_ASSETS
            await self._checkpoint(request.id)
            assets = await self._promote_assets(request, identifier)

            step = ProvisioningStep.MATERIALIZE
            await self._checkpoint(request.id)
            secret = generate_secret()
            secret_hash = hash_password(secret)
            materialized = await self.materializer.materialize(
                identifier,
                profile,
                assets,
                contact=TenantContact(
                    business_name=request.business_name,
                    owner_name=request.owner_name,
                    email=request.email,
                    phone=request.phone,
                ),
                admin_secret_hash=secret_hash,
                request_id=request.id,
            )

            step = ProvisioningStep.ISSUE_ACCOUNT
            await self._checkpoint(request.id)
            account = await self._issue_account(request, identifier, secret_hash)

            step = ProvisioningStep.LINK_REQUEST
            await self._link(request.id, identifier, account.id)
        except AlreadyProvisionedError:
            raise
        except (ProvisioningError, SQLAlchemyError) as exc:
            cause = exc
            if isinstance(exc, SQLAlchemyError):
                cause = ExternalServiceError(f"Database error: {exc}")
            await self._record_failure(request.id, step, cause)
            logger.error(
                "Provisioning of request %s failed at %s: %s", request.id, step, cause
            )
            raise ProvisioningFailedError(step, cause, identifier) from exc

        result = ProvisioningResult(
            request_id=request.id,
            tenant_identifier=identifier,
            account_id=account.id,
            account_handle=account.handle,
            temporary_secret=secret,
            staff_count=materialized.staff_created,
            services_created=materialized.services_created,
            products_created=materialized.products_created,
            assets_degraded=assets.degraded,
            materialization_failures=list(materialized.failures),
        )
        result.notified = await self._notify(request, account, secret)
        logger.info(
            "Provisioned request %s as tenant %s (account %s)",
            request.id, identifier, account.handle,
        )
        return result

    # ── Claiming the request ──────────────────────────────────

    async def _start(self, intake_request_id: uuid.UUID, force: bool) -> IntakeRequest:
        async with self._session_factory() as session:
            request = await session.get(IntakeRequest, intake_request_id)
            if request is None:
                raise IntakeRequestNotFoundError(intake_request_id)
            if request.linked_tenant_id:
                raise AlreadyProvisionedError(
                    request.id, request.linked_tenant_id, request.linked_account_id
                )

            if request.status == IntakeStatus.PAYMENT_CONFIRMED:
                claimed = await compare_and_set_status(
                    session,
                    request.id,
                    IntakeStatus.PAYMENT_CONFIRMED,
                    IntakeStatus.PROVISIONING,
                    _UNLINKED,
                )
            elif request.status == IntakeStatus.PROVISIONING:
                if not force and not await self._attempt_stalled(request):
                    raise ProvisioningInProgressError(request.id)
                logger.warning(
                    "Taking over interrupted provisioning of request %s (force=%s)",
                    request.id, force,
                )
                # Only one caller may take over a given interrupted attempt
                claimed = await compare_and_set_status(
                    session,
                    request.id,
                    IntakeStatus.PROVISIONING,
                    IntakeStatus.PROVISIONING,
                    _UNLINKED,
                    IntakeRequest.updated_at == request.updated_at,
                )
            else:
                raise InvalidTransitionError(request.status, IntakeStatus.PROVISIONING)

            await session.refresh(request)
            if not claimed:
                raise self._claim_lost(request)
            return request

    async def _attempt_stalled(self, request: IntakeRequest) -> bool:
        if not request.reserved_tenant_id:
            return False
        marker = await self._store.get(layout.marker_path(request.reserved_tenant_id))
        return (
            marker is not None
            and marker.get("state") == layout.MarkerState.STALLED
            and marker.get("request_id") == str(request.id)
        )

    @staticmethod
    def _claim_lost(request: IntakeRequest) -> ProvisioningError:
        if request.linked_tenant_id:
            return AlreadyProvisionedError(
                request.id, request.linked_tenant_id, request.linked_account_id
            )
        if request.status == IntakeStatus.PROVISIONING:
            return ProvisioningInProgressError(request.id)
        return InvalidTransitionError(request.status, IntakeStatus.PROVISIONING)

    async def _checkpoint(self, request_id: uuid.UUID) -> None:
        """Stop the run if the request left ``provisioning`` behind our back."""
        async with self._session_factory() as session:
            row = await session.get(IntakeRequest, request_id)
            if row is None:
                raise IntakeRequestNotFoundError(request_id)
            if row.status != IntakeStatus.PROVISIONING:
                raise RequestWithdrawnError(request_id, row.status)

    # ── Steps ─────────────────────────────────────────────────

    async def _claim_identifier(self, request: IntakeRequest) -> str:
        reserved = request.reserved_tenant_id
        if reserved and await self.allocator.owned_reservation(reserved, request.id):
            logger.info("Reusing reserved identifier %s for request %s", reserved, request.id)
            return reserved

        identifier = await self.allocator.reserve(request.business_name, request.id)
        async with self._session_factory() as session:
            await session.execute(
                update(IntakeRequest)
                .where(IntakeRequest.id == request.id)
                .values(reserved_tenant_id=identifier, updated_at=utcnow())
            )
            await session.commit()
        request.reserved_tenant_id = identifier
        return identifier

    async def _promote_assets(self, request: IntakeRequest, identifier: str) -> PromotedAssetSet:
        if not request.staging_key:
            return PromotedAssetSet()

        async with self._session_factory() as session:
            staged = await session.get(StagedAssetSet, request.staging_key)
        if staged is None or staged.status == StagingStatus.REJECTED:
            logger.warning(
                "No usable staged assets under %s for request %s",
                request.staging_key, request.id,
            )
            return PromotedAssetSet()

        assets = await self.promoter.promote(request.staging_key, identifier, staged)
        await self._checkpoint(request.id)

        async with self._session_factory() as session:
            await self._settle_staged_set(session, request, assets)
        return assets

    async def _settle_staged_set(
        self, session: AsyncSession, request: IntakeRequest, assets: PromotedAssetSet
    ) -> None:
        values = {"intake_request_id": request.id, "updated_at": utcnow()}
        if not assets.outcomes or any(o.promoted for o in assets.outcomes):
            values["status"] = StagingStatus.PROMOTED
        else:
            # Nothing moved: the staged originals are still the only copies
            logger.warning(
                "No staged asset of %s was promoted; leaving the set pending",
                request.staging_key,
            )
        await session.execute(
            update(StagedAssetSet)
            .where(
                StagedAssetSet.staging_key == request.staging_key,
                StagedAssetSet.status == StagingStatus.PENDING,
            )
            .values(**values)
        )
        await session.commit()

    async def _issue_account(
        self, request: IntakeRequest, identifier: str, secret_hash: str
    ) -> Account:
        existing = await self.issuer.account_for_request(request.id)
        if existing is not None:
            return await self.issuer.reissue_secret(existing.id, secret_hash, identifier)
        return await self.issuer.issue_account(
            full_name=request.owner_name,
            email=request.email,
            password_hash=secret_hash,
            phone=request.phone,
            plan=request.plan,
            tenant_identifier=identifier,
            intake_request_id=request.id,
        )

    async def _link(
        self, request_id: uuid.UUID, identifier: str, account_id: uuid.UUID
    ) -> None:
        async with self._session_factory() as session:
            linked = await compare_and_set_status(
                session,
                request_id,
                IntakeStatus.PROVISIONING,
                IntakeStatus.PROVISIONED,
                _UNLINKED,
                linked_tenant_id=identifier,
                linked_account_id=account_id,
                last_error=None,
            )
            if linked:
                return
            row = await session.get(IntakeRequest, request_id)
            if row.linked_tenant_id:
                raise AlreadyProvisionedError(row.id, row.linked_tenant_id, row.linked_account_id)
            raise RequestWithdrawnError(request_id, row.status)

    async def _notify(self, request: IntakeRequest, account: Account, secret: str) -> bool:
        settings = get_settings()
        message = credentials_message(
            to=account.email,
            owner_name=request.owner_name,
            business_name=request.business_name,
            handle=account.handle,
            secret=secret,
            plan=request.plan,
            login_url=settings.login_url,
            support_email=settings.support_email,
        )
        try:
            await self._notifier.send(message)
        except Exception:
            logger.warning(
                "Credentials email for request %s could not be sent", request.id, exc_info=True
            )
            return False
        return True

    async def _record_failure(
        self, request_id: uuid.UUID, step: ProvisioningStep, cause: BaseException
    ) -> None:
        error = f"{step}: {cause}"[:2000]
        try:
            async with self._session_factory() as session:
                reverted = await compare_and_set_status(
                    session,
                    request_id,
                    IntakeStatus.PROVISIONING,
                    IntakeStatus.PAYMENT_CONFIRMED,
                    _UNLINKED,
                    last_error=error,
                )
                if reverted:
                    return
                # Rejected meanwhile: keep its status, only note the error
                await session.execute(
                    update(IntakeRequest)
                    .where(IntakeRequest.id == request_id, _UNLINKED)
                    .values(last_error=error, updated_at=utcnow())
                )
                await session.commit()
        except SQLAlchemyError:
            logger.exception("Could not record provisioning failure of request %s", request_id)
