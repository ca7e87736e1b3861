"""
Outbound email notifications.

Fire-and-forget from the caller's point of view: `notify()` never raises.
Delivery failures are logged and counted, and the booking flow carries on.

Delivery goes through the Resend HTTP API. Without an API key configured
the notifier only logs what it would have sent.
"""

from abc import ABC, abstractmethod
from html import escape
from typing import Any, Optional

import httpx

from marketplace.core.config import get_settings
from marketplace.core.logging import get_logger
from marketplace.core.metrics import record_notification_failure

logger = get_logger(__name__)

# template_id -> (subject, html body); fields are HTML-escaped before formatting
TEMPLATES: dict[str, tuple[str, str]] = {
    "business_welcome": (
        "Welcome to the marketplace, {name}!",
        "<h1>Welcome, {name}!</h1>"
        "<p>Your business has been registered.</p>"
        "<ol><li>Add your services and prices</li>"
        "<li>Publish your available hours</li>"
        "<li>Start receiving bookings</li></ol>",
    ),
    "admin_new_business": (
        "New business registered: {name}",
        "<h2>New business registered</h2>"
        "<p><strong>Name:</strong> {name}<br><strong>Email:</strong> {email}<br>"
        "<strong>Category:</strong> {category}<br><strong>Zone:</strong> {zone}</p>",
    ),
    "booking_requested": (
        "New booking {confirmation_code}",
        "<p>New booking <strong>{confirmation_code}</strong> for {service} "
        "on {date} at {time}. Please confirm or reject it.</p>",
    ),
    "booking_confirmed": (
        "Booking {confirmation_code} confirmed",
        "<p>{business} confirmed your booking <strong>{confirmation_code}</strong> "
        "on {date} at {time}.</p>",
    ),
    "booking_rejected": (
        "Booking {confirmation_code} rejected",
        "<p>{business} could not accept your booking <strong>{confirmation_code}</strong> "
        "on {date} at {time}. You have not been charged.</p>",
    ),
    "booking_cancelled": (
        "Booking {confirmation_code} cancelled",
        "<p>The client cancelled booking <strong>{confirmation_code}</strong> "
        "on {date} at {time}. Cancellation charge: {cancellation_charge}.</p>",
    ),
}


def render(template_id: str, fields: dict[str, Any]) -> tuple[str, str]:
    subject, body = TEMPLATES[template_id]
    safe = {key: escape(str(value if value is not None else "")) for key, value in fields.items()}
    return subject.format(**safe), body.format(**safe)


class Notifier(ABC):
    @abstractmethod
    async def notify(self, template_id: str, recipient: str, fields: dict[str, Any]) -> None:
        """Send one templated message. Must not raise."""
        pass


class LogNotifier(Notifier):
    """Used when no email provider is configured."""

    async def notify(self, template_id: str, recipient: str, fields: dict[str, Any]) -> None:
        logger.info("email_not_sent", reason="provider_not_configured", template=template_id, to=recipient)


class ResendNotifier(Notifier):
    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def notify(self, template_id: str, recipient: str, fields: dict[str, Any]) -> None:
        try:
            subject, html = render(template_id, fields)
            response = await self.client.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [recipient], "subject": subject, "html": html},
            )
            response.raise_for_status()
            logger.info("email_sent", template=template_id, to=recipient)
        except (httpx.HTTPError, KeyError, ValueError) as e:
            record_notification_failure(template_id)
            logger.error("email_send_failed", template=template_id, to=recipient, error=str(e))

    async def close(self) -> None:
        await self.client.aclose()


def build_notifier() -> Notifier:
    settings = get_settings()
    if not settings.RESEND_API_KEY:
        return LogNotifier()
    return ResendNotifier(
        api_key=settings.RESEND_API_KEY,
        sender=settings.EMAIL_FROM,
        api_url=settings.RESEND_API_URL,
        timeout=settings.EMAIL_TIMEOUT_SECONDS,
    )
