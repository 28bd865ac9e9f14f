"""Tests for the credentials email and the Resend notifier."""

import json

import httpx
import pytest

from salon_landing.core.errors import ExternalServiceError
from salon_landing.services.notifier import (
    RESEND_URL,
    EmailMessage,
    ResendNotifier,
    credentials_message,
)


def _message(**overrides) -> EmailMessage:
    fields = {
        "to": "maria@bellaspa.com",
        "owner_name": "María García",
        "business_name": "Bella Spa",
        "handle": "maria.garcia",
        "secret": "Xy7kPq2m",
        "plan": "pro",
        "login_url": "https://app.example.com/login",
        "support_email": "help@example.com",
    }
    fields.update(overrides)
    return credentials_message(**fields)


def test_credentials_message_content():
    message = _message()

    assert message.to == "maria@bellaspa.com"
    assert message.subject == "Your Bella Spa account is ready"
    for part in ("maria.garcia", "Xy7kPq2m", "pro", "https://app.example.com/login"):
        assert part in message.text
        assert part in message.html
    assert "help@example.com" in message.html


def test_credentials_message_escapes_html():
    message = _message(business_name="<b>Spa & Co</b>")
    assert "<b>Spa" not in message.html
    assert "&lt;b&gt;Spa &amp; Co&lt;/b&gt;" in message.html


def test_repr_hides_body():
    message = _message()
    assert "Xy7kPq2m" not in repr(message)
    assert "maria@bellaspa.com" in repr(message)


@pytest.mark.asyncio
async def test_send_posts_to_resend():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "email_123"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier("re_key", "Salon Landing <no-reply@example.com>", client=client)

    await notifier.send(_message())

    [request] = seen
    assert str(request.url) == RESEND_URL
    assert request.headers["authorization"] == "Bearer re_key"
    payload = json.loads(request.content)
    assert payload["from"] == "Salon Landing <no-reply@example.com>"
    assert payload["to"] == "maria@bellaspa.com"
    assert payload["subject"] == "Your Bella Spa account is ready"
    assert "Xy7kPq2m" in payload["text"]


@pytest.mark.asyncio
async def test_send_failure_raises():
    def handler(request):
        return httpx.Response(500, json={"message": "internal"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier("re_key", "no-reply@example.com", client=client)

    with pytest.raises(ExternalServiceError):
        await notifier.send(_message())


@pytest.mark.asyncio
async def test_unconfigured_notifier_raises(caplog):
    def handler(request):
        raise AssertionError("no request expected")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = ResendNotifier("", "", client=client)

    assert not notifier.configured
    with caplog.at_level("WARNING"), pytest.raises(ExternalServiceError, match="not configured"):
        await notifier.send(_message())
    assert "not configured" in caplog.text
    assert "Xy7kPq2m" not in caplog.text
