"""
Outbound mail capability.

The mailer is optional: when no credentials are configured the app runs
without one and the password recovery flow reports itself as disabled.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from portal.core.config import Settings

logger = logging.getLogger(__name__)


class SmtpMailer:
    """Sends mail through an authenticated STARTTLS SMTP server."""

    def __init__(self, host: str, port: int, user: str, password: str) -> None:
        self.host = host
        self.port = port
        self.user = user
        self._password = password

    def _connect(self) -> smtplib.SMTP:
        smtp = smtplib.SMTP(self.host, self.port, timeout=15)
        smtp.starttls()
        smtp.login(self.user, self._password)
        return smtp

    def _verify(self) -> None:
        with self._connect() as smtp:
            smtp.noop()

    def _send(self, message: EmailMessage) -> None:
        with self._connect() as smtp:
            smtp.send_message(message)

    async def verify(self) -> bool:
        try:
            await asyncio.to_thread(self._verify)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error("Mail transport verification failed: %s", exc)
            return False
        logger.info("Mail transport verified (%s:%s)", self.host, self.port)
        return True

    async def send(self, to: str, subject: str, text: str, html: str | None = None) -> None:
        message = EmailMessage()
        message["From"] = self.user
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        await asyncio.to_thread(self._send, message)


def build_mailer(settings: Settings) -> SmtpMailer | None:
    """Return a mailer when credentials are configured, else ``None``."""
    if not settings.EMAIL_USER or not settings.EMAIL_PASS:
        logger.warning(
            "Password recovery disabled: EMAIL_USER and EMAIL_PASS are not set"
        )
        return None
    return SmtpMailer(
        settings.SMTP_HOST,
        settings.SMTP_PORT,
        settings.EMAIL_USER,
        settings.EMAIL_PASS,
    )
