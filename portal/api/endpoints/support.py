"""
Module: support
Purpose: Help desk report endpoint
Author: Portal Development Team
Date: 2024
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_email_transport, EmailTransport
from portal.schemas.email import SupportReportRequest
from portal.services.request_notification_service import RequestNotificationService

router = APIRouter(prefix="/support", tags=["Support"])


@router.post("/send-report")
def send_report(
    payload: SupportReportRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Forward a support ticket to the support mailboxes."""
    return RequestNotificationService(db, transport).send_support_report(payload)
