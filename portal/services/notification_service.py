"""
Module: notification_service
Purpose: Notification fan-out and the per-user notification inbox
Author: Portal Development Team
Date: 2024
"""

from collections import Counter
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy.orm import Session

from portal.core.constants import NOTIFICATION_CATEGORIES, NOTIFICATION_CATEGORY_LABELS
from portal.core.exceptions import (
    PortalException, ValidationException, ResourceNotFoundException, SystemException
)
from portal.db.models import Notification
from portal.repositories.notification_repository import NotificationRepository
from portal.utils.logger import get_logger


class NotificationService:
    """
    Writes notification rows and serves a user's inbox.

    ``notify`` only adds rows to the caller's transaction; the caller commits
    together with the change the notifications describe.
    """

    def __init__(self, db: Session):
        self.db = db
        self.notification_repo = NotificationRepository(db)
        self.logger = get_logger(self.__class__.__name__)

    # ==================== FAN-OUT ====================

    def notify(
        self,
        user_ids: Iterable[Optional[str]],
        notification_type: str,
        title: str,
        message: str,
        reference_id: Optional[str] = None,
        reference_table: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> List[Notification]:
        """
        Create one notification per distinct recipient.

        Args:
            user_ids: Recipient ids (blanks and duplicates are skipped)
            notification_type: Notification type
            title: Short title
            message: Body text
            reference_id: Row the notification points at
            reference_table: Table of that row
            metadata: Extra routing data for clients

        Returns:
            List[Notification]: Created rows
        """
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        rows = [
            self.notification_repo.create(
                user_id=user_id,
                type=notification_type,
                title=title,
                message=message,
                reference_id=reference_id,
                reference_table=reference_table,
                meta=dict(metadata or {}),
                is_viewed=False,
            )
            for user_id in recipients
        ]

        if rows:
            self.logger.debug(
                f"Queued {len(rows)} {notification_type} notification(s)",
                reference_id=reference_id
            )
        return rows

    # ==================== INBOX ====================

    def list_notifications(
        self,
        user_id: str,
        unviewed_only: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        return [
            row.to_dict()
            for row in self.notification_repo.list_for_user(user_id, unviewed_only=unviewed_only, limit=limit)
        ]

    def count_unviewed(self, user_id: str) -> int:
        return self.notification_repo.count_unviewed(user_id)

    def get_categories(self, user_id: str) -> Dict[str, Any]:
        """
        Unviewed notifications grouped into inbox categories.

        Returns:
            dict: categories (key, label, count, types) and total
        """
        unviewed = self.notification_repo.list_for_user(user_id, unviewed_only=True)
        by_type = Counter(row.type for row in unviewed)

        categories = []
        for key, types in NOTIFICATION_CATEGORIES.items():
            categories.append({
                "key": key,
                "label": NOTIFICATION_CATEGORY_LABELS[key],
                "count": sum(by_type[t] for t in types),
                "types": list(types),
            })

        return {
            "categories": categories,
            "total": sum(category["count"] for category in categories),
        }

    def mark_all_viewed(self, user_id: str) -> int:
        return self._mark(user_id, None)

    def mark_category_viewed(self, user_id: str, category: str) -> int:
        """
        Mark every unviewed notification of one category as viewed.

        Raises:
            ValidationException: If the category is unknown
        """
        if category not in NOTIFICATION_CATEGORIES:
            raise ValidationException(
                message=f"Unknown notification category: {category}",
                details={"allowed": list(NOTIFICATION_CATEGORIES)}
            )
        return self._mark(user_id, NOTIFICATION_CATEGORIES[category])

    def mark_viewed(self, user_id: str, notification_id: str) -> Dict[str, Any]:
        """
        Mark one of the user's notifications as viewed.

        Raises:
            ResourceNotFoundException: If the user has no such notification
        """
        try:
            notification = self.notification_repo.get_by_id(notification_id)
            if notification is None or notification.user_id != user_id:
                raise ResourceNotFoundException("Notification", notification_id)

            notification.mark_viewed()
            self.db.commit()
            return notification.to_dict()

        except PortalException:
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error marking notification {notification_id} viewed: {str(e)}")
            raise SystemException(str(e))

    def _mark(self, user_id: str, types: Optional[List[str]]) -> int:
        try:
            count = self.notification_repo.mark_viewed(user_id, types)
            self.db.commit()
            self.logger.log_user_activity(
                user_id=user_id,
                action="mark_notifications_viewed",
                count=count
            )
            return count

        except PortalException:
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error marking notifications viewed: {str(e)}")
            raise SystemException(str(e))
