"""
Module: operations_repository
Purpose: Read access to tasks, proofs, teams, attendance and request tables
Author: Portal Development Team
Date: 2024
"""

from datetime import date, datetime
from typing import Dict, List, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func, asc

from portal.repositories.base import BaseRepository
from portal.db.base import BaseModel
from portal.db.models import (
    Task, TaskUpdateProof, TaskReschedule, Team, AttendanceRecord,
    MaintenanceRequest, PurchaseRequisition, ScrapRequest, GroceryRequest
)
from portal.core.constants import TaskStatus, RequestStatus
from portal.core.exceptions import handle_database_exception


class TaskRepository(BaseRepository[Task]):
    """Repository for tasks."""

    resource_name = "Task"

    def __init__(self, db: Session):
        super().__init__(Task, db)

    def count_due_on(self, day: date) -> int:
        return self.count(due_date=day)

    def count_in_progress(self) -> int:
        return self.count(status=TaskStatus.IN_PROGRESS.value)

    def count_overdue(self, today: date) -> int:
        try:
            return self.db.query(func.count(Task.id)).filter(Task.is_overdue(today)).scalar() or 0
        except SQLAlchemyError as e:
            self.logger.error(f"Database error counting overdue tasks: {str(e)}")
            raise handle_database_exception(e, "count overdue tasks")

    def list_completed_since(self, since: datetime) -> List[Task]:
        """Tasks completed (last touched) at or after the given moment."""
        try:
            return self.db.query(Task).filter(
                Task.is_completed,
                Task.updated_at >= since
            ).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Database error listing completed tasks: {str(e)}")
            raise handle_database_exception(e, "list completed tasks")

    def list_assignment_status(self) -> List[tuple]:
        """(assigned_team_ids, status) for every task."""
        try:
            return self.db.query(Task.assigned_team_ids, Task.status).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading task assignments: {str(e)}")
            raise handle_database_exception(e, "read task assignments")


class TaskProofRepository(BaseRepository[TaskUpdateProof]):
    resource_name = "Proof"

    def __init__(self, db: Session):
        super().__init__(TaskUpdateProof, db)


class TaskRescheduleRepository(BaseRepository[TaskReschedule]):
    resource_name = "Reschedule"

    def __init__(self, db: Session):
        super().__init__(TaskReschedule, db)


class TeamRepository(BaseRepository[Team]):
    resource_name = "Team"

    def __init__(self, db: Session):
        super().__init__(Team, db)

    def list_all(self) -> List[Team]:
        return self.get_all(limit=None, order_by="name")


class AttendanceRepository(BaseRepository[AttendanceRecord]):
    resource_name = "Attendance"

    def __init__(self, db: Session):
        super().__init__(AttendanceRecord, db)

    def count_by_status(self, day: date) -> Dict[str, int]:
        """Attendance rows of a day grouped by status."""
        try:
            rows = (
                self.db.query(AttendanceRecord.status, func.count(AttendanceRecord.id))
                .filter(AttendanceRecord.date == day)
                .group_by(AttendanceRecord.status)
                .order_by(asc(AttendanceRecord.status))
                .all()
            )
            return {status: count for status, count in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Database error counting attendance: {str(e)}")
            raise handle_database_exception(e, "count attendance")


class RequestRepository:
    """Pending counts across the maintenance, purchase, scrap and grocery tables."""

    REQUEST_MODELS: Dict[str, Type[BaseModel]] = {
        "maintenance": MaintenanceRequest,
        "purchase": PurchaseRequisition,
        "scrap": ScrapRequest,
        "grocery": GroceryRequest,
    }

    def __init__(self, db: Session):
        self.db = db

    def count_pending(self) -> Dict[str, int]:
        try:
            return {
                name: self.db.query(func.count(model.id)).filter(
                    model.status == RequestStatus.PENDING.value
                ).scalar() or 0
                for name, model in self.REQUEST_MODELS.items()
            }
        except SQLAlchemyError as e:
            raise handle_database_exception(e, "count pending requests")
