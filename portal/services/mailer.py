"""
Module: mailer
Purpose: SMTP transport used by the email outbox
Author: Portal Development Team
Date: 2024
"""

import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional

from portal.core.config import settings, Settings
from portal.core.exceptions import EmailDeliveryException
from portal.utils.logger import get_logger

logger = get_logger(__name__)


class EmailTransport(ABC):
    """Interface of a mail transport. Implementations raise on failure."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """False when sending would certainly fail, so messages stay queued."""

    @abstractmethod
    def send(self, recipients: List[str], subject: str, html: str) -> None:
        """Deliver one message or raise ``EmailDeliveryException``."""


class SMTPTransport(EmailTransport):
    """
    Sends HTML email over SMTP with optional STARTTLS and login.
    One connection per send call.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    @property
    def is_configured(self) -> bool:
        return self.config.smtp_configured

    def _build_message(self, recipients: List[str], subject: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((self.config.EMAILS_FROM_NAME, self.config.EMAILS_FROM_EMAIL))
        message["To"] = ", ".join(recipients)
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def send(self, recipients: List[str], subject: str, html: str) -> None:
        """
        Send one message to all recipients.

        Raises:
            EmailDeliveryException: If the server refuses or cannot be reached
        """
        smtp_settings = self.config.get_smtp_settings()
        message = self._build_message(recipients, subject, html)

        try:
            with smtplib.SMTP(
                smtp_settings["host"],
                smtp_settings["port"],
                timeout=smtp_settings["timeout"]
            ) as smtp:
                if smtp_settings["use_tls"]:
                    smtp.starttls()
                if smtp_settings["username"]:
                    smtp.login(smtp_settings["username"], smtp_settings["password"] or "")
                smtp.sendmail(smtp_settings["from_email"], recipients, message.as_string())

        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryException(recipients, str(e)[:400])

        logger.debug(f"Email sent: {subject}", recipients=recipients)


def get_email_transport() -> EmailTransport:
    """
    FastAPI dependency returning the configured transport.

    Returns:
        EmailTransport: SMTP transport
    """
    return SMTPTransport()
