"""SMTP channel for keeper alerts and daily reports."""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from ..config import EmailConfig

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "sBTC loop vault keeper"


class EmailNotifier:
    """Mails alerts over STARTTLS; log messages are not emailed."""

    def __init__(self, config: EmailConfig) -> None:
        self.recipient = config.alert_email
        self.smtp_server = config.smtp_server
        self.smtp_port = config.smtp_port
        self.sender = config.sender_email
        self.password = config.sender_password

    def build_message(self, body: str, subject: str = "") -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = self.recipient
        msg["Subject"] = subject or DEFAULT_SUBJECT
        msg.set_content(body)
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=30) as server:
            server.starttls()
            server.login(self.sender, self.password)
            server.send_message(msg)

    async def send_alert(self, message: str, subject: str = "") -> bool:
        if not self.recipient:
            logger.debug("No alert recipient configured, skipping email")
            return False
        if not self.sender or not self.password:
            logger.warning("SMTP sender credentials missing, skipping email")
            return False

        try:
            await asyncio.to_thread(self._deliver, self.build_message(message, subject))
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to email alert to %s: %s", self.recipient, e)
            return False

        logger.info("Alert emailed to %s", self.recipient)
        return True

    async def send_log(self, message: str, silent: bool = True) -> bool:
        return False
