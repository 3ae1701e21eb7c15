"""
Module: notification_repository
Purpose: Data access for notification rows and outbox messages
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, asc, func

from portal.repositories.base import BaseRepository
from portal.db.models import Notification, EmailOutboxMessage
from portal.core.exceptions import handle_database_exception


class NotificationRepository(BaseRepository[Notification]):
    """Repository for per-user notifications."""

    resource_name = "Notification"

    def __init__(self, db: Session):
        super().__init__(Notification, db)

    def list_for_user(
        self,
        user_id: str,
        unviewed_only: bool = False,
        types: Optional[List[str]] = None,
        limit: Optional[int] = None
    ) -> List[Notification]:
        """
        Notifications of a user, newest first.

        Args:
            user_id: Recipient id
            unviewed_only: Skip notifications already viewed
            types: Restrict to these notification types
            limit: Maximum rows

        Returns:
            List[Notification]
        """
        try:
            query = self.db.query(Notification).filter(Notification.user_id == user_id)
            if unviewed_only:
                query = query.filter(Notification.is_viewed.is_(False))
            if types:
                query = query.filter(Notification.type.in_(types))
            query = query.order_by(desc(Notification.created_at))
            if limit:
                query = query.limit(limit)
            return query.all()

        except SQLAlchemyError as e:
            self.logger.error(f"Database error listing notifications: {str(e)}")
            raise handle_database_exception(e, "list notifications")

    def count_unviewed(self, user_id: str) -> int:
        try:
            return self.db.query(func.count(Notification.id)).filter(
                Notification.user_id == user_id,
                Notification.is_viewed.is_(False)
            ).scalar() or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Database error counting notifications: {str(e)}")
            raise handle_database_exception(e, "count notifications")

    def mark_viewed(self, user_id: str, types: Optional[List[str]] = None) -> int:
        """
        Mark a user's unviewed notifications as viewed.

        Args:
            user_id: Recipient id
            types: Only these types (all when None)

        Returns:
            int: Number of rows updated
        """
        try:
            query = self.db.query(Notification).filter(
                Notification.user_id == user_id,
                Notification.is_viewed.is_(False)
            )
            if types is not None:
                query = query.filter(Notification.type.in_(types))

            count = query.update(
                {"is_viewed": True, "viewed_at": datetime.utcnow()},
                synchronize_session=False
            )
            self.db.flush()
            return count

        except SQLAlchemyError as e:
            self.db.rollback()
            self.logger.error(f"Database error marking notifications viewed: {str(e)}")
            raise handle_database_exception(e, "mark notifications viewed")


class EmailOutboxRepository(BaseRepository[EmailOutboxMessage]):
    """Repository for the email outbox."""

    resource_name = "Email"

    def __init__(self, db: Session):
        super().__init__(EmailOutboxMessage, db)

    def list_retryable(self, max_attempts: int, limit: Optional[int] = None) -> List[EmailOutboxMessage]:
        """Pending or failed messages below the attempt ceiling, oldest first."""
        try:
            query = (
                self.db.query(EmailOutboxMessage)
                .filter(
                    ~EmailOutboxMessage.is_sent,
                    EmailOutboxMessage.attempts < max_attempts
                )
                .order_by(asc(EmailOutboxMessage.created_at))
            )
            if limit:
                query = query.limit(limit)
            return query.all()

        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading outbox: {str(e)}")
            raise handle_database_exception(e, "read outbox")
