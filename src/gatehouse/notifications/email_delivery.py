"""Email delivery for reset and welcome notifications: SendGrid / Resend integration."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends account notification emails.

    Supports SendGrid and Resend via environment configuration.
    Falls back to logging if no provider is configured.
    """

    def __init__(
        self,
        provider: str = "",
        api_key: str = "",
        from_email: str = "no-reply@gatehouse.local",
        from_name: str = "Gatehouse",
        frontend_url: str = "http://localhost:3000",
    ):
        self.provider = provider.lower()  # "sendgrid" or "resend"
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.frontend_url = frontend_url.rstrip("/")

    async def send_password_reset(self, to_email: str, name: str, token: str) -> bool:
        reset_url = f"{self.frontend_url}/auth/reset-password?token={token}"
        body = (
            f"Hi {name or to_email},\n\n"
            "We received a request to reset your password.\n\n"
            f"Reset it here (the link expires in one hour):\n\n  {reset_url}\n\n"
            "If you did not ask for this, you can ignore this email.\n"
        )
        return await self._send(to_email, "Reset your password", body, token)

    async def send_welcome(self, to_email: str, name: str, tenant_name: str) -> bool:
        body = (
            f"Hi {name or to_email},\n\n"
            f"Your organization {tenant_name} is ready.\n\n"
            f"Sign in at {self.frontend_url}/auth/login\n"
        )
        return await self._send(to_email, f"Welcome to {tenant_name}", body)

    async def _send(self, to: str, subject: str, body: str, secret: str = "") -> bool:
        if self.provider == "sendgrid":
            return await self._send_sendgrid(to, subject, body)
        elif self.provider == "resend":
            return await self._send_resend(to, subject, body)
        else:
            logger.info(
                "No email provider configured; %r for %s%s",
                subject,
                to,
                f" (token {secret[:6]}...)" if secret else "",
            )
            return False

    async def _send_sendgrid(self, to: str, subject: str, body: str) -> bool:
        """Send via SendGrid v3 API."""
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    "https://api.sendgrid.com/v3/mail/send",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "personalizations": [{"to": [{"email": to}]}],
                        "from": {"email": self.from_email, "name": self.from_name},
                        "subject": subject,
                        "content": [{"type": "text/plain", "value": body}],
                    },
                    timeout=30,
                )
                if resp.status_code in (200, 202):
                    logger.info("SendGrid email sent to %s", to)
                    return True
                logger.warning("SendGrid error: %s %s", resp.status_code, resp.text)
                return False
        except httpx.HTTPError:
            logger.exception("SendGrid send failed")
            return False

    async def _send_resend(self, to: str, subject: str, body: str) -> bool:
        """Send via Resend API."""
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": f"{self.from_name} <{self.from_email}>",
                        "to": [to],
                        "subject": subject,
                        "text": body,
                    },
                    timeout=30,
                )
                if resp.status_code in (200, 201):
                    logger.info("Resend email sent to %s", to)
                    return True
                logger.warning("Resend error: %s %s", resp.status_code, resp.text)
                return False
        except httpx.HTTPError:
            logger.exception("Resend send failed")
            return False


@dataclass(frozen=True)
class Notification:
    """A prepared email, sent only once the caller's transaction has committed."""

    send: Callable[[], Awaitable[bool]]
    description: str


# Strong references to in-flight deliveries; the event loop only keeps weak ones.
_pending: set[asyncio.Task] = set()


async def deliver(notification: Notification) -> bool:
    """Send now. Failures are logged, never raised."""
    try:
        delivered = await notification.send()
    except asyncio.CancelledError:
        logger.warning("Notification cancelled: %s", notification.description)
        raise
    except Exception:
        logger.exception("Notification delivery crashed: %s", notification.description)
        return False
    if not delivered:
        logger.info("Notification not delivered: %s", notification.description)
    return delivered


def dispatch(notification: Optional[Notification]) -> Optional[asyncio.Task]:
    """Fire-and-forget delivery on the running loop."""
    if notification is None:
        return None
    task = asyncio.create_task(deliver(notification))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    return task


def pending_count() -> int:
    return len(_pending)


async def drain(timeout: float | None = None) -> None:
    """Wait for in-flight deliveries, e.g. before the event loop shuts down."""
    if not _pending:
        return
    _, not_done = await asyncio.wait(set(_pending), timeout=timeout)
    if not_done:
        logger.warning("Abandoning %d undelivered notifications", len(not_done))
