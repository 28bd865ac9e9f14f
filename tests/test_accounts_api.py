"""Tests for the back-office account endpoints."""

import uuid

import pytest

from salon_landing.services.credentials import CredentialIssuer


@pytest.fixture
def issue(test_session_factory):
    issuer = CredentialIssuer(test_session_factory)

    async def _issue(full_name: str, email: str, plan: str = "basic"):
        return await issuer.issue_account(
            full_name=full_name, email=email, password_hash="x", plan=plan
        )

    return _issue


@pytest.mark.asyncio
async def test_accounts_require_admin_token(client):
    resp = await client.get("/v1/accounts")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_list_accounts_with_filters(client, admin_headers, issue):
    await issue("Ana López", "ana@x.com", plan="pro")
    await issue("Eva Ruiz", "eva@x.com")

    resp = await client.get("/v1/accounts", headers=admin_headers)
    assert resp.status_code == 200
    assert len(resp.json()) == 2
    assert "password_hash" not in resp.json()[0]

    resp = await client.get("/v1/accounts", params={"plan": "pro"}, headers=admin_headers)
    assert [a["handle"] for a in resp.json()] == ["ana.lopez"]


@pytest.mark.asyncio
async def test_get_account_after_provisioning(client, admin_headers, make_request):
    request = await make_request()
    provisioned = await client.post(f"/v1/intake-requests/{request.id}/provision", headers=admin_headers)
    account_id = provisioned.json()["account_id"]

    resp = await client.get(f"/v1/accounts/{account_id}", headers=admin_headers)

    assert resp.status_code == 200
    data = resp.json()
    assert data["handle"] == "maria.garcia"
    assert data["tenant_identifier"] == "bellaspa"
    assert data["intake_request_id"] == str(request.id)
    assert data["must_change_password"] is True

    resp = await client.get(f"/v1/accounts/{uuid.uuid4()}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_suspend_and_reactivate(client, admin_headers, issue):
    account = await issue("Ana López", "ana@x.com")
    url = f"/v1/accounts/{account.id}/status"

    resp = await client.patch(url, json={"status": "suspended", "reason": "unpaid invoice"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "suspended"
    assert resp.json()["status_reason"] == "unpaid invoice"

    resp = await client.get("/v1/accounts", params={"status": "suspended"}, headers=admin_headers)
    assert [a["id"] for a in resp.json()] == [str(account.id)]

    resp = await client.patch(url, json={"status": "active"}, headers=admin_headers)
    assert resp.json()["status"] == "active"
    assert resp.json()["status_reason"] is None


@pytest.mark.asyncio
async def test_status_update_errors(client, admin_headers, issue):
    account = await issue("Ana López", "ana@x.com")

    resp = await client.patch(
        f"/v1/accounts/{account.id}/status",
        json={"status": "pending_activation"},
        headers=admin_headers,
    )
    assert resp.status_code == 422

    resp = await client.patch(
        f"/v1/accounts/{account.id}/status", json={"status": "deleted"}, headers=admin_headers
    )
    assert resp.status_code == 422

    resp = await client.patch(
        f"/v1/accounts/{uuid.uuid4()}/status", json={"status": "canceled"}, headers=admin_headers
    )
    assert resp.status_code == 404
