"""Magic-link email delivery."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from config import settings

logger = logging.getLogger(__name__)


def _build_message(email: str, link: str) -> EmailMessage:
    message = EmailMessage()
    message["Subject"] = "Your sign-in link"
    message["From"] = settings.MAIL_FROM
    message["To"] = email
    ttl = int(settings.MAGIC_LINK_TTL_MINUTES)
    message.set_content(
        "Use the link below to sign in and seal a memory.\n\n"
        f"{link}\n\n"
        f"The link expires in {ttl} minutes. If you did not ask for it, ignore this email.\n"
    )
    return message


def _deliver(message: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, int(settings.SMTP_PORT), timeout=15) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USERNAME:
            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
        smtp.send_message(message)


async def send_magic_link(email: str, link: str) -> bool:
    """Send a sign-in link. Returns False when SMTP is not configured."""
    if not settings.SMTP_HOST:
        logger.warning("SMTP_HOST not configured; magic link for %s was not delivered", email)
        return False
    message = _build_message(email, link)
    await asyncio.to_thread(_deliver, message)
    logger.info("Magic link sent to %s", email)
    return True
