"""
Module: email
Purpose: Payloads of the email dispatch endpoints
Author: Portal Development Team
Date: 2024
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TaskNotificationRequest(BaseModel):
    """
    Task notification email request.

    Every field except ``type`` and ``taskId`` is optional here; which of
    them are required depends on ``type`` and is checked by the dispatcher.
    Accepts camelCase (as sent by clients) or snake_case keys.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Optional[str] = None
    task_id: Optional[str] = None
    staff_id: Optional[str] = None
    staff_email: Optional[str] = None
    staff_name: Optional[str] = None
    admin_email: Optional[str] = None
    delegated_by: Optional[str] = None
    rejected_by: Optional[str] = None
    approved_by: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None
    team_name: Optional[str] = None
    leader_email: Optional[str] = None
    leader_name: Optional[str] = None
    team_member_count: Optional[int] = None
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    proof_id: Optional[str] = None


class LowBalanceAlertRequest(BaseModel):
    """Low-balance alert request; admin_emails falls back to every admin."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    branch: Optional[str] = None
    balance: Optional[Decimal] = None
    admin_emails: Optional[List[str]] = None


class OutboxFlushResponse(BaseModel):
    success: bool = True
    attempted: int
    sent: int
    failed: int
    pending: int


class RescheduleNotificationRequest(BaseModel):
    """Reschedule email request; recipients come from the stored reschedule."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Optional[str] = None
    reschedule_id: Optional[str] = None


class RequestNotificationRequest(BaseModel):
    """
    Purchase, scrap, grocery or asset request email.

    ``request_data`` is the request row as the client holds it (snake_case
    keys); only the fields the templates read are used.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: Optional[str] = None
    request_data: Optional[Dict[str, Any]] = None
    admin_email: Optional[str] = None
    staff_email: Optional[str] = None
    submitter_email: Optional[str] = None
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    verification_notes: Optional[str] = None
    asset_request: Optional[Dict[str, Any]] = None
    duplicate_serial_no: Optional[str] = None


class LowStockAlertRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    item_name: Optional[str] = None
    quantity: Optional[float] = None
    branch: Optional[str] = None
    staff_name: Optional[str] = None


class SupportReportRequest(BaseModel):
    """Help desk report. Sender fields arrive in snake_case, ``ticketNo`` in camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ticket_no: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    attachment_urls: Optional[List[str]] = None
