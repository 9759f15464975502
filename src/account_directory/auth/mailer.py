"""
Out-of-band delivery of email verification links.

Two mailers are provided:
    SmtpMailer:    sends through the configured SMTP relay
    LoggingMailer: writes the link to the log; used when no SMTP host is set

Delivery failures raise :class:`MailDeliveryError`. The flow controller treats
them as non-fatal: the session stays pending and the visitor can ask for a
resend.
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from account_directory.config import EmailSettings

logger = logging.getLogger(__name__)

SUBJECT = "Verify your account"


class MailDeliveryError(RuntimeError):
    """Raised when a verification mail could not be handed off."""


class Mailer(Protocol):
    def send_verification(self, to_address: str, link: str) -> None: ...


def _body(link: str) -> str:
    return f"Click the following link to verify your account: {link}\n"


class LoggingMailer:
    """Development mailer that logs instead of sending."""

    def send_verification(self, to_address: str, link: str) -> None:
        logger.info("Verification mail for %s: %s", to_address, link)


class SmtpMailer:
    """Send verification mail through an SMTP relay."""

    def __init__(self, settings: EmailSettings) -> None:
        self.settings = settings

    def send_verification(self, to_address: str, link: str) -> None:
        message = EmailMessage()
        message["From"] = self.settings.sender
        message["To"] = to_address
        message["Subject"] = SUBJECT
        message.set_content(_body(link))

        try:
            with smtplib.SMTP(
                self.settings.smtp_host,
                self.settings.smtp_port,
                timeout=self.settings.timeout_seconds,
            ) as smtp:
                if self.settings.starttls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"Failed to send verification mail: {exc}") from exc


def build_mailer(settings: EmailSettings | None = None) -> Mailer:
    """Pick the mailer for the configured email settings."""
    if settings is None:
        from account_directory.config import config

        settings = config.email
    if not settings.smtp_host:
        return LoggingMailer()
    return SmtpMailer(settings)
