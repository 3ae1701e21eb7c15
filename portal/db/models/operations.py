"""
Module: operations
Purpose: Task, team, attendance and request models read by reporting and task emails
Author: Portal Development Team
Date: 2024
"""

from datetime import date
from sqlalchemy import (
    Column, String, Date, DateTime, Text, ForeignKey, Index, CheckConstraint, JSON, and_
)
from sqlalchemy.orm import relationship
from sqlalchemy.ext.hybrid import hybrid_method, hybrid_property

from portal.db.base import BaseModel
from portal.core.constants import (
    TaskStatus, AttendanceStatus, RequestStatus, VerificationStatus
)


class Team(BaseModel):
    """Group of staff members that tasks can be assigned to."""

    __tablename__ = "teams"

    name = Column(
        String(150),
        nullable=False,
        unique=True,
        comment="Team name"
    )

    leader_id = Column(
        String(36),
        nullable=True,
        comment="Team leader (staff id)"
    )

    branch = Column(
        String(100),
        nullable=True,
        comment="Branch the team works for"
    )

    members = relationship("Staff", back_populates="team", foreign_keys="Staff.team_id")

    def __repr__(self) -> str:
        return f"<Team(name='{self.name}')>"


class Task(BaseModel):
    """
    Work item assigned to staff members and/or teams.
    """

    __tablename__ = "tasks"

    title = Column(
        String(255),
        nullable=False,
        comment="Task title"
    )

    description = Column(
        Text,
        nullable=True,
        comment="Task description"
    )

    status = Column(
        String(20),
        nullable=False,
        default=TaskStatus.PENDING.value,
        index=True,
        comment="pending, in_progress, completed or cancelled"
    )

    priority = Column(
        String(20),
        nullable=True,
        comment="Priority label"
    )

    due_date = Column(
        Date,
        nullable=True,
        index=True,
        comment="Due date"
    )

    assigned_staff_ids = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Assigned staff ids"
    )

    assigned_team_ids = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Assigned team ids"
    )

    created_by = Column(
        String(36),
        nullable=True,
        comment="Admin who created the task"
    )

    completed_at = Column(
        DateTime,
        nullable=True,
        comment="When the task was completed"
    )

    proofs = relationship(
        "TaskUpdateProof",
        back_populates="task",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint(
            status.in_([s.value for s in TaskStatus]),
            name="valid_task_status"
        ),
        Index("idx_task_status_due", status, due_date),
    )

    @hybrid_property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED.value

    @hybrid_method
    def is_overdue(self, today: date) -> bool:
        return bool(self.due_date and self.due_date < today and not self.is_completed)

    @is_overdue.expression
    def is_overdue(cls, today: date):
        return and_(cls.due_date < today, cls.status != TaskStatus.COMPLETED.value)

    def __repr__(self) -> str:
        return f"<Task(title='{self.title}', status='{self.status}')>"


class TaskUpdateProof(BaseModel):
    """Photo or document uploaded by staff as proof of task progress."""

    __tablename__ = "task_update_proofs"

    task_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Task the proof belongs to"
    )

    staff_id = Column(
        String(36),
        nullable=True,
        comment="Uploader"
    )

    image_url = Column(
        String(500),
        nullable=True,
        comment="Stored proof location"
    )

    notes = Column(
        Text,
        nullable=True,
        comment="Uploader notes"
    )

    verification_status = Column(
        String(20),
        nullable=False,
        default=VerificationStatus.PENDING.value,
        comment="pending, approved or rejected"
    )

    verified_by = Column(
        String(36),
        nullable=True,
        comment="Verifier"
    )

    verified_at = Column(
        DateTime,
        nullable=True,
        comment="When the proof was verified"
    )

    rejection_reason = Column(
        Text,
        nullable=True,
        comment="Reason given on rejection"
    )

    task = relationship("Task", back_populates="proofs")


class TaskReschedule(BaseModel):
    """Request by a staff member to move the due date of a task."""

    __tablename__ = "task_reschedules"

    task_id = Column(
        String(36),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Task to reschedule"
    )

    staff_id = Column(
        String(36),
        nullable=True,
        comment="Requesting staff member"
    )

    admin_id = Column(
        String(36),
        nullable=True,
        comment="Admin who decides the request"
    )

    reason = Column(Text, nullable=True, comment="Why the new date is needed")
    original_due_date = Column(Date, nullable=True, comment="Due date when the request was made")
    requested_new_date = Column(Date, nullable=False, comment="Proposed due date")

    status = Column(
        String(20),
        nullable=False,
        default=VerificationStatus.PENDING.value,
        index=True,
        comment="pending, approved or rejected"
    )

    admin_response = Column(Text, nullable=True, comment="Admin note on the decision")

    task = relationship("Task")

    __table_args__ = (
        CheckConstraint(
            status.in_([s.value for s in VerificationStatus]),
            name="valid_reschedule_status"
        ),
    )


class AttendanceRecord(BaseModel):
    """Attendance of one staff member for one day."""

    __tablename__ = "attendance"

    staff_id = Column(
        String(36),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Staff member"
    )

    date = Column(
        Date,
        nullable=False,
        index=True,
        comment="Attendance day"
    )

    status = Column(
        String(20),
        nullable=False,
        default=AttendanceStatus.PRESENT.value,
        comment="present, absent or leave"
    )

    check_in = Column(DateTime, nullable=True, comment="Check-in time")
    check_out = Column(DateTime, nullable=True, comment="Check-out time")

    __table_args__ = (
        CheckConstraint(
            status.in_([s.value for s in AttendanceStatus]),
            name="valid_attendance_status"
        ),
        Index("idx_attendance_staff_date", staff_id, date, unique=True),
    )


class RequestMixin:
    """Columns shared by the maintenance, purchase, scrap and grocery request tables."""

    requested_by = Column(
        String(36),
        nullable=True,
        comment="Requesting staff member"
    )

    branch = Column(
        String(100),
        nullable=True,
        comment="Branch the request is raised for"
    )

    title = Column(
        String(255),
        nullable=False,
        comment="Short description"
    )

    details = Column(
        Text,
        nullable=True,
        comment="Full request text"
    )

    status = Column(
        String(20),
        nullable=False,
        default=RequestStatus.PENDING.value,
        index=True,
        comment="pending, approved, rejected or completed"
    )


class MaintenanceRequest(BaseModel, RequestMixin):
    __tablename__ = "maintenance_requests"


class PurchaseRequisition(BaseModel, RequestMixin):
    __tablename__ = "purchase_requisitions"


class ScrapRequest(BaseModel, RequestMixin):
    __tablename__ = "scrap_requests"


class GroceryRequest(BaseModel, RequestMixin):
    __tablename__ = "grocery_requests"
