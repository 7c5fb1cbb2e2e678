import asyncio
import logging
from email.message import EmailMessage
from typing import Optional

import aiosmtplib

from ..core.config import settings

logger = logging.getLogger(__name__)


async def _send_async(msg: EmailMessage) -> None:
    await aiosmtplib.send(
        msg,
        hostname=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME or None,
        password=settings.SMTP_PASSWORD or None,
        start_tls=bool(settings.SMTP_USERNAME),
    )


def send_email(recipient: str, subject: str, body: str) -> bool:
    """Send an email via SMTP and log failures.

    Returns ``True`` when the message was handed to the SMTP server.
    """
    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.set_content(body)
    try:
        asyncio.run(_send_async(msg))
        logger.info("Sent email to %s", recipient)
        return True
    except Exception as exc:  # pragma: no cover - network issues
        logger.error("Failed to send email to %s: %s", recipient, exc)
        return False


def send_application_approved(recipient: str, name: str) -> bool:
    subject = "Your artist application has been approved"
    body = (
        f"Hi {name or 'there'},\n\n"
        "Your artist application was approved. You can now sign in with the "
        "email and password you registered with and start accepting bookings.\n"
    )
    return send_email(recipient, subject, body)


def send_application_rejected(recipient: str, name: str, reason: Optional[str] = None) -> bool:
    subject = "Update on your artist application"
    body = f"Hi {name or 'there'},\n\nUnfortunately your artist application was not approved.\n"
    if reason:
        body += f"\nReason: {reason}\n"
    return send_email(recipient, subject, body)
