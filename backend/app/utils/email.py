import asyncio
import logging
from email.message import EmailMessage

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
        start_tls=settings.SMTP_STARTTLS and bool(settings.SMTP_USERNAME),
        timeout=15,
    )


def build_message(recipient: str, subject: str, html: str, text: str | None = None) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = settings.SMTP_FROM
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.set_content(text or subject)
    msg.add_alternative(html, subtype="html")
    return msg


def send_email(recipient: str, subject: str, html: str, text: str | None = None) -> None:
    """Send a multipart email via SMTP.

    Raises on any transport failure; callers decide whether that matters.
    """
    if not settings.SMTP_HOST:
        raise RuntimeError("SMTP_HOST is not configured")
    asyncio.run(_send_async(build_message(recipient, subject, html, text)))
    logger.info("Sent email to %s", recipient)
