"""
Module: request_notification_service
Purpose: Emails for purchase, scrap, grocery and asset requests, stationary low-stock alerts and support reports
Author: Portal Development Team
Date: 2024
"""

from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple
from sqlalchemy.orm import Session
from pydantic.alias_generators import to_camel

from portal.core.config import settings
from portal.core.constants import (
    EmailCategory, RequestFlow, RequestNotificationKind as Kind, SupportCategory, SupportPriority
)
from portal.core.exceptions import (
    PortalException, SystemException, ValidationException, RequiredFieldMissingException
)
from portal.repositories.user_repository import AdminRepository
from portal.schemas.email import RequestNotificationRequest, LowStockAlertRequest, SupportReportRequest
from portal.services import email_templates
from portal.services.email_templates import Fields
from portal.services.mailer import EmailTransport
from portal.services.outbox_service import EmailOutboxService
from portal.utils.formatting import format_date, format_inr
from portal.utils.logger import get_logger

# (recipients, subject, html)
Rendered = Tuple[List[str], str, str]


class RequestView(NamedTuple):
    """What the templates show of a request row."""
    label: str
    item: str
    staff_name: str
    fields: Fields
    path: str
    extra_html: str = ""


def _staff(data: Dict[str, Any]) -> Dict[str, Any]:
    # Joined rows arrive either as an object or as a one-element list
    staff = data.get("staff")
    if isinstance(staff, list):
        staff = staff[0] if staff else None
    return staff if isinstance(staff, dict) else {}


def _staff_name(data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        if data.get(key):
            return str(data[key])
    return _staff(data).get("name") or data.get("name") or "Staff Member"


def _purchase_view(data: Dict[str, Any]) -> RequestView:
    return RequestView(
        label="Purchase",
        item=data.get("purchase_item") or "Unknown Item",
        staff_name=_staff_name(data),
        fields=[
            ("Item", data.get("purchase_item") or "Unknown Item"),
            ("Branch", data.get("branch") or "Unknown Branch"),
            ("Department", data.get("department")),
            ("Description", data.get("description")),
            ("Requested", format_date(data.get("created_at"))),
        ],
        path="/admin/purchase",
    )


def _scrap_view(data: Dict[str, Any]) -> RequestView:
    brand = data.get("brand_name") or "Unknown Item"
    serial = data.get("serial_number")
    return RequestView(
        label="Scrap",
        item=f"{brand} ({serial})" if serial else brand,
        staff_name=_staff_name(data, "submitter_name"),
        fields=[
            ("Brand", brand),
            ("Serial number", serial),
            ("Workstation", data.get("workstation_number")),
            ("Condition", (data.get("scrap_status") or "").replace("_", " ").title()),
            ("Branch", data.get("branch")),
            ("Requested", format_date(data.get("requested_date") or data.get("created_at"))),
        ],
        path="/admin/scrap",
    )


def _grocery_view(data: Dict[str, Any]) -> RequestView:
    items = data.get("items") if isinstance(data.get("items"), list) else []
    branch = data.get("branch") or "Unknown Branch"
    return RequestView(
        label="Grocery",
        item=f"{len(items)} item{'s' if len(items) != 1 else ''} • {branch}",
        staff_name=_staff_name(data, "staff_name"),
        fields=[
            ("Branch", branch),
            ("Total", format_inr(data.get("total_request_amount"))),
            ("Notes", data.get("notes")),
            ("Requested", format_date(data.get("requested_date") or data.get("created_at"))),
        ],
        path="/admin/grocery",
        extra_html=email_templates.render_item_table(items),
    )


def _asset_view(data: Dict[str, Any]) -> RequestView:
    item = data.get("product_name") or data.get("asset_name") or data.get("brand_name") or "Unknown Asset"
    return RequestView(
        label="Asset",
        item=item,
        staff_name=_staff_name(data, "staff_name"),
        fields=[
            ("Asset", item),
            ("Brand", data.get("brand_name")),
            ("Serial number", data.get("serial_no") or data.get("serial_number")),
            ("Branch", data.get("branch")),
            ("Requested", format_date(data.get("requested_date") or data.get("created_at"))),
        ],
        path="/admin/assets",
    )


def _product_fields(data: Dict[str, Any]) -> Fields:
    return [
        ("Requested item", data.get("purchase_item") or "Unknown Item"),
        ("Product", data.get("product_name")),
        ("Brand", data.get("brand_name")),
        ("Serial number", data.get("serial_no")),
        ("Condition", (data.get("condition") or "").replace("_", " ").title()),
        ("Warranty", data.get("warranty")),
    ]


VIEWS: Dict[str, Callable[[Dict[str, Any]], RequestView]] = {
    RequestFlow.PURCHASE.value: _purchase_view,
    RequestFlow.SCRAP.value: _scrap_view,
    RequestFlow.GROCERY.value: _grocery_view,
    RequestFlow.ASSET.value: _asset_view,
}


class RequestNotificationRoute(NamedTuple):
    required: Tuple[str, ...]
    render: Callable[["RequestNotificationService", RequestView, RequestNotificationRequest], Rendered]


class RequestNotificationService:
    """
    Sends request workflow emails. Each flow has its own dispatch table of
    kinds; a kind names the payload fields it needs and its renderer.
    """

    def __init__(self, db: Session, transport: Optional[EmailTransport] = None):
        self.db = db
        self.admin_repo = AdminRepository(db)
        self.outbox = EmailOutboxService(db, transport)
        self.logger = get_logger(self.__class__.__name__)

    def send(self, flow: RequestFlow, payload: RequestNotificationRequest) -> Dict[str, object]:
        """
        Validate the payload for its kind, queue the email and deliver it.

        Raises:
            RequiredFieldMissingException: If type, requestData or a field the kind needs is missing
            ValidationException: If the kind is unknown for the flow or there is nobody to email
        """
        missing = [
            name for name, value in (("type", payload.type), ("requestData", payload.request_data))
            if value is None or value == ""
        ]
        if missing:
            raise RequiredFieldMissingException(missing)

        routes = DISPATCH[flow.value]
        route = routes.get(payload.type)
        if route is None:
            raise ValidationException(
                f"Invalid notification type: {payload.type}",
                details={"allowed": list(routes)}
            )

        values = payload.model_dump()
        missing = [name for name in route.required if values.get(name) is None or values.get(name) == ""]
        if missing:
            raise RequiredFieldMissingException([to_camel(name) for name in missing])

        view = VIEWS[flow.value](payload.request_data)
        recipients, subject, html = route.render(self, view, payload)
        message = self._queue(recipients, subject, html, EmailCategory.REQUEST_NOTIFICATION.value)

        sent = self.outbox.deliver(message)
        self.logger.info(
            f"{view.label} notification {payload.type} processed",
            recipients=message.recipient_list,
            sent=sent
        )
        return {
            "success": True,
            "message": "Notification sent" if sent else "Notification queued",
            "recipients": message.recipient_list,
        }

    def send_low_stock_alert(self, payload: LowStockAlertRequest) -> Dict[str, Any]:
        """
        Alert every admin that a stationary item is running out.

        Raises:
            ValidationException: If a field is missing or no admin has an email address
        """
        missing = [
            wire for wire, value in (
                ("itemName", payload.item_name),
                ("quantity", payload.quantity),
                ("branch", payload.branch),
                ("staffName", payload.staff_name),
            )
            if value is None or value == ""
        ]
        if missing:
            raise ValidationException(
                "Missing required fields: itemName, quantity, branch, and staffName",
                details={"missing_fields": missing}
            )

        recipients = self.admin_repo.list_emails()
        if not recipients:
            self.logger.warning(
                "No admin emails found for low stock alert",
                item_name=payload.item_name,
                branch=payload.branch
            )
            raise ValidationException("No admin emails found")

        quantity = f"{payload.quantity:g}"
        subject, html = email_templates.render_low_stock_alert(
            payload.item_name, quantity, payload.branch, payload.staff_name
        )
        message = self._queue(recipients, subject, html, EmailCategory.LOW_STOCK.value)
        self.outbox.deliver(message)

        return {
            "success": True,
            "message": "Low stock alert email sent successfully",
            "details": {
                "itemName": payload.item_name,
                "quantity": payload.quantity,
                "branch": payload.branch,
                "staffName": payload.staff_name,
                "recipients": len(message.recipient_list),
            },
        }

    def send_support_report(self, payload: SupportReportRequest) -> Dict[str, Any]:
        """
        Forward a help desk report, one message per support address.

        SUPPORT_REPORT_RECIPIENTS lists the addresses; every admin is used
        when it is empty.
        """
        missing = [
            wire for wire, value in (
                ("ticketNo", payload.ticket_no),
                ("user_name", payload.user_name),
                ("user_email", payload.user_email),
                ("title", payload.title),
                ("description", payload.description),
            )
            if not value
        ]
        if missing:
            raise RequiredFieldMissingException(missing)

        recipients = list(settings.SUPPORT_REPORT_RECIPIENTS) or self.admin_repo.list_emails()
        if not recipients:
            raise ValidationException("No support recipients configured")

        subject, html = email_templates.render_support_report(
            ticket_no=payload.ticket_no,
            sender_name=payload.user_name,
            sender_email=payload.user_email,
            sender_role=payload.user_role or "staff",
            category=payload.category or SupportCategory.OTHER.value,
            priority=payload.priority or SupportPriority.MEDIUM.value,
            title=payload.title,
            description=payload.description,
            attachment_urls=payload.attachment_urls or [],
        )
        message = self._queue(recipients, subject, html, EmailCategory.SUPPORT_REPORT.value, per_recipient=True)
        sent = self.outbox.deliver(message)

        self.logger.log_user_activity(
            user_id=payload.user_email,
            action="send_support_report",
            ticket_no=payload.ticket_no,
            sent=sent
        )
        return {
            "success": True,
            "message": "Support report sent" if sent else "Support report queued",
            "recipients": message.recipient_list,
        }

    def _queue(self, recipients: List[Optional[str]], subject: str, html: str, category: str,
               per_recipient: bool = False):
        try:
            message = self.outbox.enqueue(recipients, subject, html, category, per_recipient=per_recipient)
            if message is None:
                raise ValidationException("No recipient email address available")
            self.db.commit()
            return message

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error queuing {category} email: {str(e)}")
            raise SystemException(str(e))

    # ==================== RENDERERS ====================

    def _new_request(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        subject, html = email_templates.render_request_submitted(
            view.label, view.item, view.staff_name, view.fields, view.path, view.extra_html
        )
        return [p.admin_email], subject, html

    def _submission(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        # Older clients put the admin address inside requestData
        data = p.request_data
        _, subject, html = self._new_request(view, p)
        return [p.admin_email or data.get("adminEmail") or data.get("admin_email")], subject, html

    def _decision(self, view: RequestView, p: RequestNotificationRequest, approved: bool,
                  recipient: Optional[str]) -> Rendered:
        data = p.request_data
        if approved:
            note = p.admin_notes or data.get("admin_notes")
        else:
            note = p.rejection_reason or data.get("rejection_reason")
        subject, html = email_templates.render_request_decision(
            view.label, view.item, view.staff_name, approved, view.fields, note
        )
        return [recipient], subject, html

    def _approved(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        return self._decision(view, p, True, p.staff_email)

    def _rejected(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        return self._decision(view, p, False, p.staff_email)

    def _scrap_approved(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        return self._decision(view, p, True, p.submitter_email)

    def _scrap_rejected(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        return self._decision(view, p, False, p.submitter_email)

    def _status_update(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        data = p.request_data
        status = data.get("status")
        if status not in (Kind.APPROVED.value, Kind.REJECTED.value):
            raise ValidationException(
                "requestData.status must be approved or rejected",
                details={"status": status}
            )
        recipient = p.staff_email or data.get("staffEmail") or _staff(data).get("email")
        return self._decision(view, p, status == Kind.APPROVED.value, recipient)

    def _product_uploaded(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        subject, html = email_templates.render_product_uploaded(
            view.item, view.staff_name, _product_fields(p.request_data)
        )
        return [p.admin_email], subject, html

    def _product_verified(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        notes = p.verification_notes or p.request_data.get("verification_notes")
        subject, html = email_templates.render_product_verified(
            view.item, view.staff_name, _product_fields(p.request_data), notes
        )
        return [p.staff_email], subject, html

    def _product_rejected(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        subject, html = email_templates.render_product_rejected(
            view.item, view.staff_name, _product_fields(p.request_data), p.rejection_reason
        )
        return [p.staff_email], subject, html

    def _asset_created(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        asset = _asset_view(p.asset_request)
        subject, html = email_templates.render_asset_created(
            asset.item, view.staff_name, asset.fields + [("From requisition", view.item)]
        )
        return [p.staff_email], subject, html

    def _duplicate_serial(self, view: RequestView, p: RequestNotificationRequest) -> Rendered:
        subject, html = email_templates.render_duplicate_serial(view.item, view.staff_name, p.duplicate_serial_no)
        return [p.staff_email], subject, html


DISPATCH: Dict[str, Dict[str, RequestNotificationRoute]] = {
    RequestFlow.PURCHASE.value: {
        Kind.SUBMISSION.value: RequestNotificationRoute(
            (), RequestNotificationService._submission),
        Kind.STATUS_UPDATE.value: RequestNotificationRoute(
            (), RequestNotificationService._status_update),
        Kind.NEW_REQUEST.value: RequestNotificationRoute(
            ("admin_email",), RequestNotificationService._new_request),
        Kind.APPROVED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._approved),
        Kind.REJECTED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._rejected),
        Kind.PRODUCT_UPLOADED.value: RequestNotificationRoute(
            ("admin_email",), RequestNotificationService._product_uploaded),
        Kind.PRODUCT_VERIFIED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._product_verified),
        Kind.PRODUCT_REJECTED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._product_rejected),
        Kind.ASSET_CREATED.value: RequestNotificationRoute(
            ("staff_email", "asset_request"), RequestNotificationService._asset_created),
        Kind.DUPLICATE_SERIAL.value: RequestNotificationRoute(
            ("staff_email", "duplicate_serial_no"), RequestNotificationService._duplicate_serial),
    },
    RequestFlow.SCRAP.value: {
        Kind.NEW_REQUEST.value: RequestNotificationRoute(
            ("admin_email",), RequestNotificationService._new_request),
        Kind.APPROVED.value: RequestNotificationRoute(
            ("submitter_email",), RequestNotificationService._scrap_approved),
        Kind.REJECTED.value: RequestNotificationRoute(
            ("submitter_email", "rejection_reason"), RequestNotificationService._scrap_rejected),
    },
    RequestFlow.GROCERY.value: {
        Kind.NEW_REQUEST.value: RequestNotificationRoute(
            ("admin_email",), RequestNotificationService._new_request),
        Kind.APPROVED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._approved),
        Kind.REJECTED.value: RequestNotificationRoute(
            ("staff_email", "rejection_reason"), RequestNotificationService._rejected),
    },
    RequestFlow.ASSET.value: {
        Kind.NEW_REQUEST.value: RequestNotificationRoute(
            ("admin_email",), RequestNotificationService._new_request),
        Kind.APPROVED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._approved),
        Kind.REJECTED.value: RequestNotificationRoute(
            ("staff_email",), RequestNotificationService._rejected),
    },
}
