"""Notification transports. A sink never raises; it reports delivery as a bool."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from contest_reminder.settings import AppConfig

logger = logging.getLogger(__name__)
SMTP_TIMEOUT_SECONDS = 15
SENDER_DISPLAY_NAME = "Contest Reminder"


class TransportError(RuntimeError):
    pass


class NotificationSink(Protocol):
    def send(self, recipient: str, subject: str, text_body: str, html_body: str) -> bool: ...


class LogSink:
    """Used when no transport is configured: the message is only logged."""

    def send(self, recipient: str, subject: str, text_body: str, html_body: str) -> bool:
        logger.info("Notification (log only) to=%s subject=%s", recipient, subject)
        return True


class EmailSink:
    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        user: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        timeout: float = SMTP_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.user = user
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def _build_message(self, recipient: str, subject: str, text_body: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f'"{SENDER_DISPLAY_NAME}" <{self.sender}>'
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.starttls:
                    smtp.starttls()
                if self.user and self.password:
                    smtp.login(self.user, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

    def send(self, recipient: str, subject: str, text_body: str, html_body: str) -> bool:
        try:
            self._deliver(self._build_message(recipient, subject, text_body, html_body))
        except TransportError as exc:
            logger.error("Email to=%s subject=%s failed: %s", recipient, subject, exc)
            return False
        logger.info("Email sent to=%s subject=%s", recipient, subject)
        return True


def build_sink(config: AppConfig) -> NotificationSink:
    if not config.smtp_configured:
        return LogSink()
    if config.smtp_user and not config.smtp_password:
        logger.error("SMTP_USER is set but no usable SMTP password. Falling back to log-only notifications.")
        return LogSink()
    sender = config.smtp_sender or config.smtp_user
    if not sender:
        logger.error("SMTP_SENDER (or SMTP_USER) is required for email. Falling back to log-only notifications.")
        return LogSink()
    return EmailSink(
        config.smtp_host,
        config.smtp_port,
        sender,
        user=config.smtp_user,
        password=config.smtp_password,
        starttls=config.smtp_starttls,
    )
