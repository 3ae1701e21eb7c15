"""
Module: cron
Purpose: Scheduler-triggered jobs
Author: Portal Development Team
Date: 2024
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_email_transport, verify_cron_secret, EmailTransport
from portal.services.report_service import ReportService

router = APIRouter(prefix="/cron", tags=["Cron"])


@router.get("/daily-report", dependencies=[Depends(verify_cron_secret)])
def daily_report(
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Build today's operations report and email it to the admin and report recipients."""
    return ReportService(db, transport).send_daily_report()
