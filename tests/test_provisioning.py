"""End-to-end tests for the provisioning orchestrator."""

import asyncio
import uuid
from unittest.mock import patch

import pytest
from sqlmodel import func, select

from salon_landing.core.errors import (
    AlreadyProvisionedError,
    DuplicateEmailError,
    ExternalServiceError,
    IntakeRequestNotFoundError,
    InvalidTransitionError,
    ProvisioningFailedError,
    ProvisioningInProgressError,
    RequestWithdrawnError,
)
from salon_landing.core.security import verify_password
from salon_landing.models.account import Account
from salon_landing.models.document import StoredDocument
from salon_landing.models.intake import IntakeRequest, IntakeStatus, StaffDraft, TenantProfile
from salon_landing.models.staging import StagedAssetSet, StagingStatus
from salon_landing.services import intake as intake_service
from salon_landing.services import layout
from salon_landing.services.provisioning import ProvisioningStep

STAGING_KEY = "salon_1700000000000_42"


async def _count_documents(session_factory) -> int:
    async with session_factory() as sess:
        result = await sess.execute(select(func.count()).select_from(StoredDocument))
        return result.scalar_one()


async def _reload(session_factory, request_id) -> IntakeRequest:
    async with session_factory() as sess:
        return await sess.get(IntakeRequest, request_id)


@pytest.mark.asyncio
async def test_bella_spa_end_to_end(
    orchestrator, make_request, stage_assets, store, object_store, notifier, test_session_factory
):
    await stage_assets(logo="logo", staff=["ana"], gallery=["front", "chairs"])
    profile = TenantProfile(staff=[StaffDraft(name="Ana López")])
    request = await make_request(profile=profile, staging_key=STAGING_KEY, plan="pro")

    result = await orchestrator.provision(request.id)

    # Identifier and linkage
    assert result.tenant_identifier == "bellaspa"
    stored = await _reload(test_session_factory, request.id)
    assert stored.status == IntakeStatus.PROVISIONED
    assert stored.linked_tenant_id == "bellaspa"
    assert stored.linked_account_id == result.account_id
    assert stored.reserved_tenant_id == "bellaspa"
    assert stored.last_error is None

    # Tenant documents
    assert (await store.get(layout.marker_path("bellaspa")))["state"] == layout.MarkerState.READY
    assert await store.exists(layout.directory_path("bellaspa"))
    staff = [d for _, d in await store.list("tenants/bellaspa/staff")]
    assert len(staff) == 6 == result.staff_count
    assert staff[0]["name"] == "Ana López"
    assert staff[0]["url"] == object_store.url_for("bellaspa/staff/ana")
    config = await store.get("tenants/bellaspa/config/general")
    assert config["branding"]["logo_url"] == object_store.url_for("bellaspa/logo/logo")
    assert result.services_created == 1
    assert result.products_created == 1
    assert not result.assets_degraded
    assert result.materialization_failures == []

    # Assets moved out of staging
    assert not any(k.startswith("staging/") for k in object_store.objects)
    async with test_session_factory() as sess:
        staged = await sess.get(StagedAssetSet, STAGING_KEY)
    assert staged.status == StagingStatus.PROMOTED
    assert staged.intake_request_id == request.id

    # Account shares the secret with the tenant admin user
    async with test_session_factory() as sess:
        account = await sess.get(Account, result.account_id)
    assert account.handle == result.account_handle == "maria.garcia"
    assert account.email == "maria@bellaspa.com"
    assert account.plan == "pro"
    assert account.tenant_identifier == "bellaspa"
    assert verify_password(result.temporary_secret, account.password_hash)
    [(_, admin)] = await store.list("tenants/bellaspa/users")
    assert verify_password(result.temporary_secret, admin["password_hash"])

    # Owner notified
    [message] = notifier.sent
    assert result.notified
    assert message.to == "maria@bellaspa.com"
    assert "maria.garcia" in message.text
    assert result.temporary_secret in message.text


@pytest.mark.asyncio
async def test_secret_never_logged(orchestrator, make_request, caplog):
    request = await make_request()
    with caplog.at_level("DEBUG"):
        result = await orchestrator.provision(request.id)
    assert result.temporary_secret not in caplog.text
    assert result.temporary_secret not in repr(result)


@pytest.mark.asyncio
async def test_second_provision_is_idempotent(orchestrator, make_request, test_session_factory):
    request = await make_request()
    first = await orchestrator.provision(request.id)
    documents_before = await _count_documents(test_session_factory)

    with pytest.raises(AlreadyProvisionedError) as exc_info:
        await orchestrator.provision(request.id)

    assert exc_info.value.tenant_identifier == first.tenant_identifier
    assert exc_info.value.account_id == first.account_id
    assert await _count_documents(test_session_factory) == documents_before


@pytest.mark.asyncio
async def test_taken_identifier_gets_suffix(orchestrator, make_request):
    first = await make_request(email="a@bellaspa.com")
    second = await make_request(email="b@bellaspa.com", owner_name="Eva Ruiz")

    assert (await orchestrator.provision(first.id)).tenant_identifier == "bellaspa"
    assert (await orchestrator.provision(second.id)).tenant_identifier == "bellaspa1"


@pytest.mark.asyncio
async def test_without_staging_key(orchestrator, make_request, object_store):
    request = await make_request(profile=TenantProfile(logo_url="https://form/logo.png"))
    result = await orchestrator.provision(request.id)

    assert result.tenant_identifier == "bellaspa"
    assert not result.assets_degraded
    assert object_store.calls == []


@pytest.mark.asyncio
async def test_degraded_assets_do_not_fail(
    orchestrator, make_request, stage_assets, object_store, test_session_factory
):
    await stage_assets(logo="logo")
    object_store.fail_rename = True
    object_store.fail_upload = True
    request = await make_request(staging_key=STAGING_KEY)

    result = await orchestrator.provision(request.id)

    assert result.assets_degraded
    assert result.tenant_identifier == "bellaspa"
    # Nothing was moved, so the staged originals stay claimable
    async with test_session_factory() as sess:
        staged = await sess.get(StagedAssetSet, STAGING_KEY)
    assert staged.status == StagingStatus.PENDING
    assert staged.intake_request_id == request.id


@pytest.mark.asyncio
async def test_notification_failure_is_not_fatal(orchestrator, make_request, notifier, test_session_factory):
    notifier.fail = True
    request = await make_request()

    result = await orchestrator.provision(request.id)

    assert not result.notified
    assert (await _reload(test_session_factory, request.id)).status == IntakeStatus.PROVISIONED


@pytest.mark.asyncio
async def test_unknown_request(orchestrator):
    with pytest.raises(IntakeRequestNotFoundError):
        await orchestrator.provision(uuid.uuid4())


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [IntakeStatus.PENDING, IntakeStatus.APPROVED_PENDING_PAYMENT, IntakeStatus.REJECTED],
)
async def test_request_must_be_paid(orchestrator, make_request, store, status):
    request = await make_request(status=status)
    with pytest.raises(InvalidTransitionError):
        await orchestrator.provision(request.id)
    assert await store.list("tenants") == []


def _hold_renames(object_store):
    """Park every rename until ``release`` is set; ``started`` fires on the first."""
    started, release = asyncio.Event(), asyncio.Event()
    rename = object_store.rename

    async def _held(from_key, to_key):
        started.set()
        await release.wait()
        return await rename(from_key, to_key)

    object_store.rename = _held
    return started, release


@pytest.mark.asyncio
async def test_provisioning_request_is_not_taken_over(orchestrator, make_request, store):
    request = await make_request(status=IntakeStatus.PROVISIONING)

    with pytest.raises(ProvisioningInProgressError) as exc_info:
        await orchestrator.provision(request.id)

    assert exc_info.value.request_id == request.id
    assert await store.list("tenants") == []


@pytest.mark.asyncio
async def test_forced_resume_of_stuck_request(orchestrator, make_request, test_session_factory):
    request = await make_request(status=IntakeStatus.PROVISIONING)

    result = await orchestrator.provision(request.id, force=True)

    assert result.tenant_identifier == "bellaspa"
    assert (await _reload(test_session_factory, request.id)).status == IntakeStatus.PROVISIONED


@pytest.mark.asyncio
async def test_stalled_attempt_is_resumed(orchestrator, make_request, store):
    request = await make_request(status=IntakeStatus.PROVISIONING, reserved_tenant_id="bellaspa")
    await store.set(
        layout.marker_path("bellaspa"),
        {"state": "stalled", "stalled_from": "reserved", "request_id": str(request.id)},
    )

    result = await orchestrator.provision(request.id)

    assert result.tenant_identifier == "bellaspa"
    assert (await store.get(layout.marker_path("bellaspa")))["state"] == layout.MarkerState.READY


@pytest.mark.asyncio
async def test_stalled_marker_of_other_request_does_not_unlock(orchestrator, make_request, store):
    request = await make_request(status=IntakeStatus.PROVISIONING, reserved_tenant_id="bellaspa")
    await store.set(layout.marker_path("bellaspa"), {"state": "stalled", "request_id": "someone-else"})

    with pytest.raises(ProvisioningInProgressError):
        await orchestrator.provision(request.id)


@pytest.mark.asyncio
async def test_concurrent_runs_provision_once(
    orchestrator, make_request, stage_assets, store, object_store, notifier, test_session_factory
):
    await stage_assets(logo="logo")
    request = await make_request(staging_key=STAGING_KEY)
    started, release = _hold_renames(object_store)

    first = asyncio.create_task(orchestrator.provision(request.id))
    await started.wait()

    with pytest.raises(ProvisioningInProgressError):
        await orchestrator.provision(request.id)

    release.set()
    result = await first

    assert [doc_id for doc_id, _ in await store.list("tenants")] == ["bellaspa"]
    assert len(notifier.sent) == 1
    async with test_session_factory() as sess:
        accounts = (await sess.execute(select(Account))).scalars().all()
    assert [a.id for a in accounts] == [result.account_id]
    assert verify_password(result.temporary_secret, accounts[0].password_hash)


@pytest.mark.asyncio
async def test_rejection_during_run_stops_pipeline(
    orchestrator, make_request, stage_assets, store, object_store, notifier, test_session_factory
):
    await stage_assets(logo="logo")
    request = await make_request(staging_key=STAGING_KEY)
    started, release = _hold_renames(object_store)

    run = asyncio.create_task(orchestrator.provision(request.id))
    await started.wait()
    async with test_session_factory() as sess:
        rejected = await intake_service.update_status(
            sess, request.id, IntakeStatus.REJECTED, object_store
        )
    assert rejected.status == IntakeStatus.REJECTED
    release.set()

    with pytest.raises(ProvisioningFailedError) as exc_info:
        await run

    assert exc_info.value.step == ProvisioningStep.PROMOTE_ASSETS
    assert isinstance(exc_info.value.cause, RequestWithdrawnError)
    assert not exc_info.value.retryable
    stored = await _reload(test_session_factory, request.id)
    assert stored.status == IntakeStatus.REJECTED
    assert stored.linked_tenant_id is None
    assert "promote_assets" in stored.last_error
    assert not await store.exists(layout.directory_path("bellaspa"))
    assert notifier.sent == []
    async with test_session_factory() as sess:
        staged = await sess.get(StagedAssetSet, STAGING_KEY)
    assert staged.status == StagingStatus.REJECTED


@pytest.mark.asyncio
async def test_rejection_before_link_is_kept(
    orchestrator, make_request, object_store, notifier, test_session_factory, monkeypatch
):
    request = await make_request()
    issue_account = orchestrator._issue_account

    async def _issue_then_reject(*args):
        account = await issue_account(*args)
        async with test_session_factory() as sess:
            await intake_service.update_status(sess, request.id, IntakeStatus.REJECTED, object_store)
        return account

    monkeypatch.setattr(orchestrator, "_issue_account", _issue_then_reject)

    with pytest.raises(ProvisioningFailedError) as exc_info:
        await orchestrator.provision(request.id)

    assert exc_info.value.step == ProvisioningStep.LINK_REQUEST
    assert isinstance(exc_info.value.cause, RequestWithdrawnError)
    stored = await _reload(test_session_factory, request.id)
    assert stored.status == IntakeStatus.REJECTED
    assert stored.linked_tenant_id is None
    assert stored.linked_account_id is None
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_failure_restores_status_and_retry_reuses_identifier(
    orchestrator, make_request, store, test_session_factory
):
    request = await make_request()

    async def _fail(self):
        raise ExternalServiceError("document store unavailable")

    with (
        patch("salon_landing.core.documents.WriteBatch.commit", _fail),
        pytest.raises(ProvisioningFailedError) as exc_info,
    ):
        await orchestrator.provision(request.id)

    error = exc_info.value
    assert error.step == ProvisioningStep.MATERIALIZE
    assert error.tenant_identifier == "bellaspa"
    assert error.retryable
    assert isinstance(error.cause, ExternalServiceError)

    stored = await _reload(test_session_factory, request.id)
    assert stored.status == IntakeStatus.PAYMENT_CONFIRMED
    assert stored.reserved_tenant_id == "bellaspa"
    assert stored.linked_tenant_id is None
    assert "materialize" in stored.last_error
    # The claimed identifier stays reserved for this request
    marker = await store.get(layout.marker_path("bellaspa"))
    assert marker["state"] == layout.MarkerState.RESERVED

    result = await orchestrator.provision(request.id)

    assert result.tenant_identifier == "bellaspa"
    assert [doc_id for doc_id, _ in await store.list("tenants")] == ["bellaspa"]
    stored = await _reload(test_session_factory, request.id)
    assert stored.status == IntakeStatus.PROVISIONED
    assert stored.last_error is None


@pytest.mark.asyncio
async def test_retry_after_account_failure_reuses_everything(
    orchestrator, make_request, store, test_session_factory
):
    request = await make_request(profile=TenantProfile(staff=[StaffDraft(name="Ana")]))

    with (
        patch.object(orchestrator, "_link", side_effect=ExternalServiceError("db down")),
        pytest.raises(ProvisioningFailedError) as exc_info,
    ):
        await orchestrator.provision(request.id)
    assert exc_info.value.step == ProvisioningStep.LINK_REQUEST

    result = await orchestrator.provision(request.id)

    assert result.tenant_identifier == "bellaspa"
    assert len(await store.list("tenants/bellaspa/staff")) == 6
    assert len(await store.list("tenants/bellaspa/users")) == 1
    async with test_session_factory() as sess:
        accounts = (await sess.execute(select(Account))).scalars().all()
    assert [a.id for a in accounts] == [result.account_id]
    assert verify_password(result.temporary_secret, accounts[0].password_hash)


@pytest.mark.asyncio
async def test_duplicate_email_is_not_retryable(orchestrator, make_request, test_session_factory):
    first = await make_request(business_name="Bella Spa")
    await orchestrator.provision(first.id)
    second = await make_request(business_name="Bella Nails")

    with pytest.raises(ProvisioningFailedError) as exc_info:
        await orchestrator.provision(second.id)

    assert exc_info.value.step == ProvisioningStep.ISSUE_ACCOUNT
    assert isinstance(exc_info.value.cause, DuplicateEmailError)
    assert not exc_info.value.retryable
    assert (await _reload(test_session_factory, second.id)).status == IntakeStatus.PAYMENT_CONFIRMED


@pytest.mark.asyncio
async def test_unusable_business_name(orchestrator, make_request, test_session_factory):
    request = await make_request(business_name="¡¡!!")

    with pytest.raises(ProvisioningFailedError) as exc_info:
        await orchestrator.provision(request.id)

    assert exc_info.value.step == ProvisioningStep.RESERVE_IDENTIFIER
    assert exc_info.value.tenant_identifier is None
    assert not exc_info.value.retryable
    assert (await _reload(test_session_factory, request.id)).status == IntakeStatus.PAYMENT_CONFIRMED
