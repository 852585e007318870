"""
Notification Service
====================

Email notifications for credential expirations.

The reminder sweep talks to an ``ExpirationNotifier``.  ``EmailNotifier``
renders the messages and hands them to a transport:

* ``LoggingEmailTransport`` writes the message to the log (development and
  any environment without an API key);
* ``HttpEmailTransport`` POSTs a SendGrid-v3-compatible body with httpx.

Delivery failures raise ``EmailDeliveryError``.  Deciding whether a failure
is fatal is the caller's job; the sweep records it and moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol

import httpx

from staffready.core.config import settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when an email could not be handed to the provider."""

    def __init__(self, message: str, status_code: int | None = None, raw: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.raw = raw


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    text: str
    html: Optional[str] = None


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------

class EmailTransport(Protocol):
    async def send(self, message: EmailMessage) -> None:
        ...


class ExpirationNotifier(Protocol):
    async def send_expiration_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        item_label: str,
        days_until_expiry: int,
        expires_at: datetime,
    ) -> None:
        ...

    async def send_admin_expiration_alert(
        self,
        admin_email: str,
        clinician_name: str,
        item_label: str,
        days_until_expiry: int,
    ) -> None:
        ...


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------

class LoggingEmailTransport:
    """Logs emails instead of sending them."""

    async def send(self, message: EmailMessage) -> None:
        logger.info("[DEV EMAIL] To: %s", message.to)
        logger.info("[DEV EMAIL] Subject: %s", message.subject)
        logger.info("[DEV EMAIL] Body: %s", message.text)


class HttpEmailTransport:
    """Sends email through a SendGrid-v3-compatible HTTP API."""

    def __init__(
        self,
        api_key: str,
        *,
        api_url: Optional[str] = None,
        from_email: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url or settings.email_api_url
        self.from_email = from_email or settings.email_from
        self.timeout = timeout or settings.email_timeout_seconds
        self._client = client

    def _body(self, message: EmailMessage) -> dict[str, Any]:
        content = [{"type": "text/plain", "value": message.text}]
        if message.html:
            content.append({"type": "text/html", "value": message.html})
        return {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self.from_email},
            "subject": message.subject,
            "content": content,
        }

    async def _post(self, client: httpx.AsyncClient, message: EmailMessage) -> httpx.Response:
        return await client.post(
            self.api_url,
            json=self._body(message),
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )

    async def send(self, message: EmailMessage) -> None:
        try:
            if self._client is not None:
                response = await self._post(self._client, message)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, message)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Email request to {message.to} failed: {exc}") from exc

        if response.status_code >= 300:
            raise EmailDeliveryError(
                f"Email provider error: HTTP {response.status_code}",
                status_code=response.status_code,
                raw=response.text,
            )
        logger.info("Email sent to %s: %s", message.to, message.subject)


# ---------------------------------------------------------------------------
# Message rendering
# ---------------------------------------------------------------------------

def _days(n: int) -> str:
    return f"{n} day{'' if n == 1 else 's'}"


def render_expiration_reminder(
    recipient_email: str,
    recipient_name: str,
    item_label: str,
    days_until_expiry: int,
    expires_at: datetime,
    *,
    portal_name: Optional[str] = None,
) -> EmailMessage:
    portal = portal_name or settings.portal_name
    expiry_date = expires_at.strftime("%m/%d/%Y")

    if days_until_expiry <= 0:
        subject = f"[ACTION REQUIRED] {item_label} has expired"
        line = f"Your {item_label} has expired as of {expiry_date}."
    else:
        urgency = "URGENT" if days_until_expiry <= settings.admin_alert_threshold_days else "Upcoming"
        subject = f"[{urgency}] {item_label} expires in {_days(days_until_expiry)}"
        line = (
            f"Your {item_label} will expire on {expiry_date} "
            f"({_days(days_until_expiry)} from now)."
        )

    text = "\n".join([
        f"Hi {recipient_name},",
        "",
        line,
        "",
        f"Please log in to your {portal} portal to upload the renewed document.",
        "",
        "Thank you,",
        f"{portal} Team",
    ])
    return EmailMessage(to=recipient_email, subject=subject, text=text)


def render_admin_expiration_alert(
    admin_email: str,
    clinician_name: str,
    item_label: str,
    days_until_expiry: int,
    *,
    portal_name: Optional[str] = None,
) -> EmailMessage:
    portal = portal_name or settings.portal_name

    if days_until_expiry <= 0:
        subject = f"[Alert] {clinician_name}'s {item_label} has expired"
        line = f"{clinician_name}'s {item_label} has expired and their status may need attention."
    else:
        subject = f"[Notice] {clinician_name}'s {item_label} expires in {_days(days_until_expiry)}"
        line = f"{clinician_name}'s {item_label} will expire in {_days(days_until_expiry)}."

    text = "\n".join([
        "Admin notification:",
        "",
        line,
        "",
        f"Please review in the {portal} admin dashboard.",
        "",
        f"- {portal} System",
    ])
    return EmailMessage(to=admin_email, subject=subject, text=text)


class EmailNotifier:
    """``ExpirationNotifier`` that renders emails and sends them via a transport."""

    def __init__(self, transport: EmailTransport, *, portal_name: Optional[str] = None) -> None:
        self.transport = transport
        self.portal_name = portal_name

    async def send_expiration_reminder(
        self,
        recipient_email: str,
        recipient_name: str,
        item_label: str,
        days_until_expiry: int,
        expires_at: datetime,
    ) -> None:
        await self.transport.send(
            render_expiration_reminder(
                recipient_email,
                recipient_name,
                item_label,
                days_until_expiry,
                expires_at,
                portal_name=self.portal_name,
            )
        )

    async def send_admin_expiration_alert(
        self,
        admin_email: str,
        clinician_name: str,
        item_label: str,
        days_until_expiry: int,
    ) -> None:
        await self.transport.send(
            render_admin_expiration_alert(
                admin_email,
                clinician_name,
                item_label,
                days_until_expiry,
                portal_name=self.portal_name,
            )
        )


def build_notifier() -> EmailNotifier:
    """Notifier for the current settings; logs emails when no API key is set."""
    if settings.email_api_key:
        transport: EmailTransport = HttpEmailTransport(settings.email_api_key)
    else:
        logger.info("EMAIL_API_KEY not set; emails will be logged, not sent")
        transport = LoggingEmailTransport()
    return EmailNotifier(transport)
