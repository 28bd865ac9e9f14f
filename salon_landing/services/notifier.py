"""Owner notification: emails the login handle and temporary secret."""

from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx

from salon_landing.core.config import get_settings
from salon_landing.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str = ""

    # Bodies may carry credentials
    def __repr__(self) -> str:
        return f"EmailMessage(to={self.to!r}, subject={self.subject!r})"


class Notifier(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> None:
        """Deliver ``message``. Raises ExternalServiceError on failure."""


class ResendNotifier(Notifier):
    def __init__(
        self,
        api_key: str,
        sender: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10,
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_settings(cls) -> ResendNotifier:
        settings = get_settings()
        return cls(api_key=settings.resend_api_key, sender=settings.resend_from)

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._sender)

    async def send(self, message: EmailMessage) -> None:
        if not self.configured:
            logger.warning("Resend is not configured; cannot email %s", message.to)
            raise ExternalServiceError("Resend is not configured")

        payload = {
            "from": self._sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            if self._client is not None:
                response = await self._client.post(RESEND_URL, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(RESEND_URL, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ExternalServiceError(f"Email delivery failed: {exc}") from exc
        logger.info("Sent '%s' to %s", message.subject, message.to)


def credentials_message(
    *,
    to: str,
    owner_name: str,
    business_name: str,
    handle: str,
    secret: str,
    plan: str,
    login_url: str = "",
    support_email: str = "",
) -> EmailMessage:
    """Welcome email carrying the owner's first login credentials."""
    esc = html.escape
    login_line = (
        f'<p><a href="{esc(login_url)}">Sign in to your dashboard</a></p>' if login_url else ""
    )
    support_line = (
        f"<p>Questions? Write to {esc(support_email)}.</p>" if support_email else ""
    )
    body = (
        f"<h2>Welcome, {esc(owner_name)}!</h2>"
        f"<p>Your salon <strong>{esc(business_name)}</strong> is live on the "
        f"{esc(plan)} plan.</p>"
        f"<p>User: <code>{esc(handle)}</code><br>"
        f"Temporary password: <code>{esc(secret)}</code></p>"
        "<p>You will be asked to choose a new password on your first sign in.</p>"
        f"{login_line}{support_line}"
    )
    text = (
        f"Welcome, {owner_name}!\n\n"
        f"Your salon {business_name} is live on the {plan} plan.\n"
        f"User: {handle}\nTemporary password: {secret}\n\n"
        "You will be asked to choose a new password on your first sign in.\n"
        + (f"{login_url}\n" if login_url else "")
    )
    return EmailMessage(
        to=to,
        subject=f"Your {business_name} account is ready",
        html=body,
        text=text,
    )
