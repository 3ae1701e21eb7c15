"""
Module: task_notification_service
Purpose: Dispatch of task and reschedule notification emails by kind
Author: Portal Development Team
Date: 2024
"""

from typing import Callable, Dict, List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session
from pydantic.alias_generators import to_camel

from portal.core.constants import TaskNotificationKind, RescheduleNotificationKind, EmailCategory
from portal.core.exceptions import (
    PortalException, SystemException, ValidationException, ResourceNotFoundException,
    RequiredFieldMissingException
)
from portal.db.models import Task, TaskReschedule
from portal.repositories.operations_repository import TaskRepository, TaskProofRepository, TaskRescheduleRepository
from portal.repositories.user_repository import StaffRepository, AdminRepository
from portal.schemas.email import TaskNotificationRequest, RescheduleNotificationRequest
from portal.services import email_templates
from portal.services.mailer import EmailTransport
from portal.services.outbox_service import EmailOutboxService
from portal.utils.logger import get_logger

# (recipients, subject, html)
Rendered = Tuple[List[str], str, str]


class TaskNotificationRoute(NamedTuple):
    required: Tuple[str, ...]
    render: Callable[["TaskNotificationService", Task, TaskNotificationRequest], Rendered]


class TaskNotificationService:
    """
    Sends task emails. Each kind declares the payload fields it needs and
    the renderer that turns the task and payload into a message.
    """

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.task_repo = TaskRepository(db)
        self.proof_repo = TaskProofRepository(db)
        self.staff_repo = StaffRepository(db)
        self.outbox = EmailOutboxService(db, transport)
        self.logger = get_logger(self.__class__.__name__)

    def send(self, payload: TaskNotificationRequest) -> Dict[str, object]:
        """
        Validate the payload for its kind, queue the email and deliver it.

        Raises:
            RequiredFieldMissingException: If taskId or a field the kind needs is missing
            ResourceNotFoundException: If the task (or staff member / proof) does not exist
            ValidationException: If the kind is unknown
        """
        if not payload.task_id:
            raise RequiredFieldMissingException(["taskId"])

        task = self.task_repo.get_by_id(payload.task_id)
        if task is None:
            raise ResourceNotFoundException("Task", payload.task_id)

        route = DISPATCH.get(payload.type)
        if route is None:
            raise ValidationException(
                f"Invalid notification type: {payload.type}",
                details={"allowed": [kind.value for kind in TaskNotificationKind]}
            )

        values = payload.model_dump()
        missing = [name for name in route.required if values.get(name) is None or values.get(name) == ""]
        if missing:
            raise RequiredFieldMissingException([to_camel(name) for name in missing])

        recipients, subject, html = route.render(self, task, payload)

        try:
            message = self.outbox.enqueue(recipients, subject, html, EmailCategory.TASK_NOTIFICATION.value)
            if message is None:
                raise ValidationException("No recipient email address available")
            self.db.commit()

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error queuing {payload.type} email for task {task.id}: {str(e)}")
            raise SystemException(str(e))

        sent = self.outbox.deliver(message)
        self.logger.info(
            f"Task notification {payload.type} processed",
            task_id=task.id,
            recipients=message.recipient_list,
            sent=sent
        )
        return {
            "success": True,
            "message": "Notification sent" if sent else "Notification queued",
            "recipients": message.recipient_list,
        }

    # ==================== RENDERERS ====================

    def _assignment(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_task_assignment(task, p.staff_name)
        return [p.staff_email], subject, html

    def _update(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_task_update(task, p.staff_name, p.changes or {})
        return [p.staff_email], subject, html

    def _delegation(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        staff = self.staff_repo.get_by_id(p.staff_id)
        if staff is None:
            raise ResourceNotFoundException("Staff member", p.staff_id)
        if not staff.email:
            raise ValidationException("Staff member has no email address", details={"staff_id": staff.id})

        subject, html = email_templates.render_task_delegation(task, staff.name, p.delegated_by)
        return [staff.email], subject, html

    def _delegation_admin_notify(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_delegation_admin_notice(task, p.delegated_by)
        return [p.admin_email], subject, html

    def _rejection(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_task_rejection(task, p.staff_name, p.rejected_by or "Admin")
        return [p.staff_email], subject, html

    def _approval(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_task_approval(task, p.staff_name, p.approved_by or "Admin")
        return [p.staff_email], subject, html

    def _team_assignment(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_team_task_assignment(
            task, p.team_name, p.leader_name, p.team_member_count
        )
        return [p.leader_email], subject, html

    def _status_change(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        subject, html = email_templates.render_task_status_change(
            task, p.staff_name, p.old_status, p.new_status
        )
        return [p.admin_email], subject, html

    def _proof_approval(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        proof = self.proof_repo.get_by_id_or_raise(p.proof_id)
        subject, html = email_templates.render_proof_approval(task, p.staff_name, p.approved_by, proof)
        return [p.staff_email], subject, html

    def _proof_rejection(self, task: Task, p: TaskNotificationRequest) -> Rendered:
        proof = self.proof_repo.get_by_id_or_raise(p.proof_id)
        subject, html = email_templates.render_proof_rejection(task, p.staff_name, p.rejected_by, proof)
        return [p.staff_email], subject, html


DISPATCH: Dict[str, TaskNotificationRoute] = {
    TaskNotificationKind.ASSIGNMENT.value: TaskNotificationRoute(
        ("staff_email", "staff_name"), TaskNotificationService._assignment),
    TaskNotificationKind.UPDATE.value: TaskNotificationRoute(
        ("staff_email", "staff_name"), TaskNotificationService._update),
    TaskNotificationKind.DELEGATION.value: TaskNotificationRoute(
        ("staff_id",), TaskNotificationService._delegation),
    TaskNotificationKind.DELEGATION_ADMIN_NOTIFY.value: TaskNotificationRoute(
        ("admin_email", "delegated_by"), TaskNotificationService._delegation_admin_notify),
    TaskNotificationKind.REJECTION.value: TaskNotificationRoute(
        ("staff_email", "staff_name"), TaskNotificationService._rejection),
    TaskNotificationKind.APPROVAL.value: TaskNotificationRoute(
        ("staff_email", "staff_name"), TaskNotificationService._approval),
    TaskNotificationKind.TEAM_ASSIGNMENT.value: TaskNotificationRoute(
        ("team_name", "leader_email", "leader_name", "team_member_count"),
        TaskNotificationService._team_assignment),
    TaskNotificationKind.STATUS_CHANGE.value: TaskNotificationRoute(
        ("admin_email", "staff_name", "old_status", "new_status"), TaskNotificationService._status_change),
    TaskNotificationKind.PROOF_VERIFICATION_APPROVAL.value: TaskNotificationRoute(
        ("staff_email", "staff_name", "approved_by", "proof_id"), TaskNotificationService._proof_approval),
    TaskNotificationKind.PROOF_VERIFICATION_REJECTION.value: TaskNotificationRoute(
        ("staff_email", "staff_name", "rejected_by", "proof_id"), TaskNotificationService._proof_rejection),
}


class RescheduleNotificationService:
    """
    Reschedule emails. The stored reschedule names the task, the staff
    member and the admin, so the payload only carries its id and the kind.
    """

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.reschedule_repo = TaskRescheduleRepository(db)
        self.staff_repo = StaffRepository(db)
        self.admin_repo = AdminRepository(db)
        self.outbox = EmailOutboxService(db, transport)
        self.logger = get_logger(self.__class__.__name__)

    def send(self, payload: RescheduleNotificationRequest) -> Dict[str, object]:
        missing = [
            name for name, value in (("type", payload.type), ("rescheduleId", payload.reschedule_id))
            if not value
        ]
        if missing:
            raise RequiredFieldMissingException(missing)

        reschedule = self.reschedule_repo.get_by_id(payload.reschedule_id)
        if reschedule is None:
            raise ResourceNotFoundException("Reschedule", payload.reschedule_id)

        render = RESCHEDULE_DISPATCH.get(payload.type)
        if render is None:
            raise ValidationException(
                f"Invalid notification type: {payload.type}",
                details={"allowed": [kind.value for kind in RescheduleNotificationKind]}
            )

        recipients, subject, html = render(self, reschedule)

        try:
            message = self.outbox.enqueue(recipients, subject, html, EmailCategory.RESCHEDULE_NOTIFICATION.value)
            if message is None:
                raise ValidationException("No recipient email address available")
            self.db.commit()

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error queuing {payload.type} email for reschedule {reschedule.id}: {str(e)}")
            raise SystemException(str(e))

        sent = self.outbox.deliver(message)
        self.logger.info(
            f"Reschedule notification {payload.type} processed",
            reschedule_id=reschedule.id,
            recipients=message.recipient_list,
            sent=sent
        )
        return {
            "success": True,
            "message": "Notification sent" if sent else "Notification queued",
            "recipients": message.recipient_list,
        }

    def _staff_contact(self, reschedule: TaskReschedule) -> Tuple[Optional[str], str]:
        staff = self.staff_repo.get_by_id(reschedule.staff_id) if reschedule.staff_id else None
        return (staff.email, staff.name) if staff else (None, "Unknown Staff")

    def _new_reschedule(self, reschedule: TaskReschedule) -> Rendered:
        admin = self.admin_repo.get_by_id(reschedule.admin_id) if reschedule.admin_id else None
        _, staff_name = self._staff_contact(reschedule)
        subject, html = email_templates.render_reschedule_request(
            reschedule, reschedule.task, staff_name, admin.name if admin else "Admin"
        )
        return [admin.email if admin else None], subject, html

    def _decision(self, reschedule: TaskReschedule, approved: bool) -> Rendered:
        email, staff_name = self._staff_contact(reschedule)
        subject, html = email_templates.render_reschedule_decision(
            reschedule, reschedule.task, staff_name, approved
        )
        return [email], subject, html

    def _approved(self, reschedule: TaskReschedule) -> Rendered:
        return self._decision(reschedule, True)

    def _rejected(self, reschedule: TaskReschedule) -> Rendered:
        return self._decision(reschedule, False)


RESCHEDULE_DISPATCH: Dict[str, Callable[[RescheduleNotificationService, TaskReschedule], Rendered]] = {
    RescheduleNotificationKind.NEW_RESCHEDULE.value: RescheduleNotificationService._new_reschedule,
    RescheduleNotificationKind.RESCHEDULE_APPROVED.value: RescheduleNotificationService._approved,
    RescheduleNotificationKind.RESCHEDULE_REJECTED.value: RescheduleNotificationService._rejected,
}
