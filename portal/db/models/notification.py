"""
Module: notification
Purpose: In-app notification rows and the email outbox
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from typing import List
from sqlalchemy import (
    Column, String, Boolean, DateTime, Text, Integer, Index, CheckConstraint, JSON
)
from sqlalchemy.ext.hybrid import hybrid_property

from portal.db.base import BaseModel
from portal.core.constants import EmailStatus


class Notification(BaseModel):
    """
    Notification addressed to one staff member or admin.
    Viewed state is tracked on the row itself.
    """

    __tablename__ = "notifications"

    user_id = Column(
        String(36),
        nullable=False,
        index=True,
        comment="Recipient (staff or admin id)"
    )

    type = Column(
        String(50),
        nullable=False,
        index=True,
        comment="Notification type, e.g. cashbook_entry"
    )

    title = Column(
        String(255),
        nullable=False,
        comment="Short title"
    )

    message = Column(
        Text,
        nullable=False,
        comment="Body text"
    )

    reference_id = Column(
        String(36),
        nullable=True,
        comment="Id of the row this notification points at"
    )

    reference_table = Column(
        String(64),
        nullable=True,
        comment="Table of the referenced row"
    )

    # "metadata" is reserved on declarative classes
    meta = Column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
        comment="Routing and display data for clients"
    )

    is_viewed = Column(
        Boolean,
        nullable=False,
        default=False,
        server_default='false',
        comment="Whether the recipient has seen it"
    )

    viewed_at = Column(
        DateTime,
        nullable=True,
        comment="When it was marked viewed"
    )

    __table_args__ = (
        Index("idx_notification_user_viewed", user_id, is_viewed),
    )

    def mark_viewed(self, when: datetime = None) -> None:
        if not self.is_viewed:
            self.is_viewed = True
            self.viewed_at = when or datetime.utcnow()

    def __repr__(self) -> str:
        return f"<Notification(user_id='{self.user_id}', type='{self.type}', viewed={self.is_viewed})>"


class EmailOutboxMessage(BaseModel):
    """
    One outgoing email.
    Rows are written with the data change that caused them and delivered after commit.
    """

    __tablename__ = "email_outbox"

    recipients = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Recipient addresses"
    )

    subject = Column(
        String(255),
        nullable=False,
        comment="Subject line"
    )

    html = Column(
        Text,
        nullable=False,
        comment="HTML body"
    )

    category = Column(
        String(50),
        nullable=False,
        index=True,
        comment="What produced the message"
    )

    per_recipient = Column(
        Boolean,
        nullable=False,
        default=False,
        comment="Send one message per recipient and tolerate individual failures"
    )

    status = Column(
        String(20),
        nullable=False,
        default=EmailStatus.PENDING.value,
        index=True,
        comment="pending, sent or failed"
    )

    attempts = Column(
        Integer,
        nullable=False,
        default=0,
        comment="Delivery attempts so far"
    )

    last_error = Column(
        Text,
        nullable=True,
        comment="Error of the last failed attempt"
    )

    sent_at = Column(
        DateTime,
        nullable=True,
        comment="When delivery succeeded"
    )

    __table_args__ = (
        CheckConstraint(
            status.in_([s.value for s in EmailStatus]),
            name="valid_email_status"
        ),
        CheckConstraint("attempts >= 0", name="non_negative_attempts"),
    )

    @hybrid_property
    def is_sent(self) -> bool:
        return self.status == EmailStatus.SENT.value

    @property
    def recipient_list(self) -> List[str]:
        return list(self.recipients or [])

    def record_success(self) -> None:
        self.attempts = (self.attempts or 0) + 1
        self.status = EmailStatus.SENT.value
        self.sent_at = datetime.utcnow()
        self.last_error = None

    def record_failure(self, error: str) -> None:
        self.attempts = (self.attempts or 0) + 1
        self.status = EmailStatus.FAILED.value
        self.last_error = error

    def __repr__(self) -> str:
        return f"<EmailOutboxMessage(category='{self.category}', status='{self.status}', attempts={self.attempts})>"
