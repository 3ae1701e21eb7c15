"""
Module: report_service
Purpose: Daily operations report - aggregation and delivery
Author: Portal Development Team
Date: 2024
"""

from collections import Counter
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from fastapi import status
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.constants import (
    AttendanceStatus, TaskStatus, EmailCategory, ErrorCode,
    DAILY_REPORT_TOP_PERFORMERS, DAILY_REPORT_TEAM_LIMIT
)
from portal.core.exceptions import PortalException, SystemException
from portal.repositories.operations_repository import (
    TaskRepository, TeamRepository, AttendanceRepository, RequestRepository
)
from portal.repositories.user_repository import StaffRepository, AdminRepository
from portal.services import email_templates
from portal.services.mailer import EmailTransport
from portal.services.outbox_service import EmailOutboxService, unique_recipients
from portal.utils.logger import get_logger


def completion_rate(completed: int, total: int) -> int:
    """Percentage rounded half up; zero when there is nothing to complete."""
    if not total:
        return 0
    return int(completed * 100 / total + 0.5)


class ReportService:
    """Builds and emails the daily operations report."""

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.task_repo = TaskRepository(db)
        self.team_repo = TeamRepository(db)
        self.attendance_repo = AttendanceRepository(db)
        self.request_repo = RequestRepository(db)
        self.staff_repo = StaffRepository(db)
        self.admin_repo = AdminRepository(db)
        self.outbox = EmailOutboxService(db, transport)
        self.logger = get_logger(self.__class__.__name__)

    def build_daily_report(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Aggregate today's task, attendance and request figures.

        Args:
            today: Report day (defaults to the current date)

        Returns:
            dict: Report figures
        """
        today = today or date.today()
        start_of_day = datetime.combine(today, time.min)

        completed_today = self.task_repo.list_completed_since(start_of_day)
        attendance = self.attendance_repo.count_by_status(today)

        return {
            "date": today.isoformat(),
            "today_tasks": self.task_repo.count_due_on(today),
            "completed_today": len(completed_today),
            "in_progress": self.task_repo.count_in_progress(),
            "overdue": self.task_repo.count_overdue(today),
            "attendance": {
                "present": attendance.get(AttendanceStatus.PRESENT.value, 0),
                "absent": attendance.get(AttendanceStatus.ABSENT.value, 0),
                "leave": attendance.get(AttendanceStatus.LEAVE.value, 0),
            },
            "pending_requests": self.request_repo.count_pending(),
            "top_performers": self._top_performers(completed_today),
            "team_performance": self._team_performance(),
        }

    def _top_performers(self, completed_tasks) -> List[Dict[str, Any]]:
        counts = Counter()
        for task in completed_tasks:
            for staff_id in task.assigned_staff_ids or []:
                counts[staff_id] += 1

        leaders = counts.most_common(DAILY_REPORT_TOP_PERFORMERS)
        names = self.staff_repo.get_names_by_ids([staff_id for staff_id, _ in leaders])
        return [
            {"staff_id": staff_id, "staff_name": names.get(staff_id, "Unknown"), "tasks_completed": count}
            for staff_id, count in leaders
        ]

    def _team_performance(self) -> List[Dict[str, Any]]:
        assignments = self.task_repo.list_assignment_status()
        performance = []
        for team in self.team_repo.list_all()[:DAILY_REPORT_TEAM_LIMIT]:
            statuses = [task_status for team_ids, task_status in assignments if team.id in (team_ids or [])]
            completed = sum(1 for s in statuses if s == TaskStatus.COMPLETED.value)
            performance.append({
                "team_id": team.id,
                "team_name": team.name,
                "total_tasks": len(statuses),
                "completed_tasks": completed,
                "completion_rate": completion_rate(completed, len(statuses)),
            })
        return performance

    def send_daily_report(self, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Email the report to the first admin and the configured extra recipients,
        one message per recipient.

        Raises:
            PortalException: 404 when no admin exists
        """
        admin = self.admin_repo.get_first()
        if admin is None:
            raise PortalException(
                status_code=status.HTTP_404_NOT_FOUND,
                message="No admin found",
                error_code=ErrorCode.RESOURCE_NOT_FOUND.value
            )

        report = self.build_daily_report(today)
        recipients = unique_recipients([admin.email] + list(settings.DAILY_REPORT_RECIPIENTS))

        try:
            subject, html = email_templates.render_daily_report(report)
            message = self.outbox.enqueue(
                recipients, subject, html, EmailCategory.DAILY_REPORT.value, per_recipient=True
            )
            self.db.commit()

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error queuing daily report: {str(e)}")
            raise SystemException(str(e))

        delivery = self.outbox.deliver_many([message])
        self.logger.log_system_event(
            component="daily_report",
            event="sent",
            status="completed",
            report_date=report["date"],
            recipients=len(recipients),
            **delivery
        )
        return {
            "success": True,
            "message": "Daily report sent",
            "recipients": recipients,
            "report": report,
        }
