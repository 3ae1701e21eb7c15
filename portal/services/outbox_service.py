"""
Module: outbox_service
Purpose: Email outbox - enqueue with the data change, deliver after commit, retry on demand
Author: Portal Development Team
Date: 2024
"""

from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from portal.core.config import settings
from portal.core.constants import EmailStatus
from portal.db.models import EmailOutboxMessage
from portal.repositories.notification_repository import EmailOutboxRepository
from portal.services.mailer import EmailTransport, SMTPTransport
from portal.utils.logger import get_logger


def unique_recipients(addresses: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and case-insensitive duplicates, keeping first-seen order."""
    seen = set()
    result = []
    for address in addresses:
        if not address:
            continue
        cleaned = address.strip()
        key = cleaned.lower()
        if cleaned and key not in seen:
            seen.add(key)
            result.append(cleaned)
    return result


class EmailOutboxService:
    """
    Email outbox.

    ``enqueue`` only adds a row to the caller's unit of work. ``deliver``
    runs after that work is committed and records the outcome on the row;
    a delivery failure is logged and never raised to the caller.
    """

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.transport = transport or SMTPTransport()
        self.outbox_repo = EmailOutboxRepository(db)
        self.logger = get_logger(self.__class__.__name__)

    def enqueue(
        self,
        recipients: Iterable[Optional[str]],
        subject: str,
        html: str,
        category: str,
        per_recipient: bool = False
    ) -> Optional[EmailOutboxMessage]:
        """
        Add a pending message to the current transaction.

        Args:
            recipients: Addresses (blanks and duplicates are dropped)
            subject: Subject line
            html: HTML body
            category: What produced the message
            per_recipient: Send one message per address

        Returns:
            EmailOutboxMessage or None when there is nobody to send to
        """
        addresses = unique_recipients(recipients)
        if not addresses:
            self.logger.warning(f"No recipients for {category} email, nothing queued", subject=subject)
            return None

        message = self.outbox_repo.create(
            recipients=addresses,
            subject=subject,
            html=html,
            category=category,
            per_recipient=per_recipient,
            status=EmailStatus.PENDING.value,
            attempts=0,
        )
        self.logger.debug(f"Queued {category} email", recipients=addresses)
        return message

    def _send(self, message: EmailOutboxMessage) -> None:
        """Hand one message to the transport, raising when nothing was delivered."""
        recipients = message.recipient_list

        if not message.per_recipient:
            self.transport.send(recipients, message.subject, message.html)
            return

        failures: Dict[str, str] = {}
        for recipient in recipients:
            try:
                self.transport.send([recipient], message.subject, message.html)
            except Exception as e:
                failures[recipient] = str(e)
                self.logger.error(
                    f"Failed to send {message.category} email to {recipient}: {e}",
                    message_id=message.id
                )

        if failures and len(failures) == len(recipients):
            raise RuntimeError("; ".join(f"{r}: {err}" for r, err in failures.items()))
        if failures:
            self.logger.warning(
                f"{message.category} email reached {len(recipients) - len(failures)} of {len(recipients)} recipients",
                message_id=message.id,
                failed=list(failures)
            )

    def deliver(self, message: EmailOutboxMessage) -> bool:
        """
        Attempt delivery and persist the outcome.

        Returns:
            bool: True when the message was sent
        """
        if message.is_sent:
            return True

        if not self.transport.is_configured:
            self.logger.warning(
                f"SMTP is not configured; {message.category} email left pending",
                message_id=message.id
            )
            return False

        try:
            self._send(message)
            message.record_success()
            sent = True
            self.logger.info(f"Delivered {message.category} email", message_id=message.id)
        except Exception as e:
            message.record_failure(str(e))
            sent = False
            self.logger.error(
                f"Failed to deliver {message.category} email: {e}",
                message_id=message.id,
                attempts=message.attempts
            )

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Could not record delivery outcome: {e}", message_id=message.id)

        return sent

    def deliver_many(self, messages: Iterable[Optional[EmailOutboxMessage]]) -> Dict[str, int]:
        """
        Deliver several messages; None entries (nothing queued) are skipped.

        Returns:
            dict: attempted / sent / failed / pending counts
        """
        summary = {"attempted": 0, "sent": 0, "failed": 0, "pending": 0}
        for message in messages:
            if message is None:
                continue
            summary["attempted"] += 1
            if self.deliver(message):
                summary["sent"] += 1
            elif message.status == EmailStatus.FAILED.value:
                summary["failed"] += 1
            else:
                summary["pending"] += 1
        return summary

    def flush(self, max_attempts: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, int]:
        """
        Retry every pending or failed message below the attempt ceiling.

        Args:
            max_attempts: Attempt ceiling (EMAIL_MAX_ATTEMPTS by default)
            limit: Maximum messages to process

        Returns:
            dict: attempted / sent / failed / pending counts
        """
        ceiling = max_attempts or settings.EMAIL_MAX_ATTEMPTS
        messages = self.outbox_repo.list_retryable(ceiling, limit)
        summary = self.deliver_many(messages)

        self.logger.log_system_event(
            component="email_outbox",
            event="flush",
            status="completed",
            **summary
        )
        return summary
