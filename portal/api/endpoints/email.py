"""
Module: email
Purpose: Email dispatch endpoints - task, reschedule and request notifications, stock and balance alerts, outbox retry
Author: Portal Development Team
Date: 2024
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_email_transport, require_admin, EmailTransport
from portal.core.constants import RequestFlow
from portal.schemas.auth import RequestContext
from portal.schemas.email import (
    TaskNotificationRequest, RescheduleNotificationRequest, RequestNotificationRequest,
    LowBalanceAlertRequest, LowStockAlertRequest, OutboxFlushResponse
)
from portal.services.cashbook_service import CashbookService
from portal.services.outbox_service import EmailOutboxService
from portal.services.request_notification_service import RequestNotificationService
from portal.services.task_notification_service import TaskNotificationService, RescheduleNotificationService

router = APIRouter(prefix="/email", tags=["Email"])


@router.post("/send-task-notification")
def send_task_notification(
    payload: TaskNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """
    Send a task email. ``type`` selects the template and the fields it needs.
    """
    return TaskNotificationService(db, transport).send(payload)


@router.post("/send-reschedule-notification")
def send_reschedule_notification(
    payload: RescheduleNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Reschedule request to the admin, or its outcome to the staff member."""
    return RescheduleNotificationService(db, transport).send(payload)


@router.post("/send-purchase-notification")
def send_purchase_notification(
    payload: RequestNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    return RequestNotificationService(db, transport).send(RequestFlow.PURCHASE, payload)


@router.post("/send-scrap-notification")
def send_scrap_notification(
    payload: RequestNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    return RequestNotificationService(db, transport).send(RequestFlow.SCRAP, payload)


@router.post("/send-grocery-notification")
def send_grocery_notification(
    payload: RequestNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    return RequestNotificationService(db, transport).send(RequestFlow.GROCERY, payload)


@router.post("/send-asset-notification")
def send_asset_notification(
    payload: RequestNotificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    return RequestNotificationService(db, transport).send(RequestFlow.ASSET, payload)


@router.post("/send-stationary-low-stock-alert")
def send_stationary_low_stock_alert(
    payload: LowStockAlertRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Tell every admin that a stationary item is nearly out of stock."""
    return RequestNotificationService(db, transport).send_low_stock_alert(payload)

@router.post("/send-low-balance-alert")
def send_low_balance_alert(
    payload: LowBalanceAlertRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Alert admins (or the given addresses) that a branch is running low on cash."""
    return CashbookService(db, transport).send_low_balance_alert(
        payload.branch, payload.balance, payload.admin_emails
    )


@router.post("/outbox/flush", response_model=OutboxFlushResponse)
def flush_outbox(
    limit: Optional[int] = Query(default=None, ge=1),
    context: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Retry pending and failed emails below the attempt ceiling."""
    summary = EmailOutboxService(db, transport).flush(limit=limit)
    return OutboxFlushResponse(**summary)
