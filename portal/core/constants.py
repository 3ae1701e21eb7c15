"""
Module: constants
Purpose: System-wide constants for the operations portal
Author: Portal Development Team
Date: 2024
"""

from enum import Enum
from typing import Dict, List, Tuple


# ==================== USER & AUTHENTICATION CONSTANTS ====================

class StaffRole(str, Enum):
    """Roles a staff member can hold."""
    STAFF = "staff"
    TEAM_LEADER = "team_leader"
    ACCOUNTANT = "accountant"
    MANAGER = "manager"


class UserType(str, Enum):
    """Kind of account behind a request context."""
    STAFF = "staff"
    ADMIN = "admin"


class TokenType(str, Enum):
    """JWT token types."""
    ACCESS = "access"


# ==================== CASHBOOK CONSTANTS ====================

class VerificationStatus(str, Enum):
    """Verification lifecycle of a cash transaction."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BillStatus(str, Enum):
    """Bill status recorded against a cash transaction."""
    PAID = "Paid"
    PENDING = "Pending"
    CANCELLED = "Cancelled"
    YET_TO_PAY = "Yet to pay"
    REFUND = "Refund"


class VoucherType(str, Enum):
    """Direction of a voucher."""
    CASH_IN = "cash_in"
    CASH_OUT = "cash_out"


VOUCHER_PREFIXES: Dict[str, str] = {
    VoucherType.CASH_IN.value: "CI",
    VoucherType.CASH_OUT.value: "CO",
}

VOUCHER_NUMBER_WIDTH = 3

# Allowed transitions of the approval state machine
VERIFICATION_TRANSITIONS: Dict[VerificationStatus, Tuple[VerificationStatus, ...]] = {
    VerificationStatus.PENDING: (VerificationStatus.APPROVED, VerificationStatus.REJECTED),
    VerificationStatus.APPROVED: (),
    VerificationStatus.REJECTED: (),
}


# ==================== EMAIL CONSTANTS ====================

class EmailStatus(str, Enum):
    """Delivery status of an outbox message."""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class EmailCategory(str, Enum):
    """What produced an outbox message."""
    CASHBOOK_PENDING = "cashbook_pending"
    CASHBOOK_APPROVED = "cashbook_approved"
    CASHBOOK_REJECTED = "cashbook_rejected"
    LOW_BALANCE = "low_balance"
    TASK_NOTIFICATION = "task_notification"
    RESCHEDULE_NOTIFICATION = "reschedule_notification"
    REQUEST_NOTIFICATION = "request_notification"
    LOW_STOCK = "low_stock"
    SUPPORT_REPORT = "support_report"
    DAILY_REPORT = "daily_report"


class TaskNotificationKind(str, Enum):
    """Task notification emails accepted by the dispatch endpoint."""
    ASSIGNMENT = "assignment"
    UPDATE = "update"
    DELEGATION = "delegation"
    DELEGATION_ADMIN_NOTIFY = "delegation_admin_notify"
    REJECTION = "rejection"
    APPROVAL = "approval"
    TEAM_ASSIGNMENT = "team_assignment"
    STATUS_CHANGE = "status_change"
    PROOF_VERIFICATION_APPROVAL = "proof_verification_approval"
    PROOF_VERIFICATION_REJECTION = "proof_verification_rejection"


class RescheduleNotificationKind(str, Enum):
    """Reschedule emails: the request goes to the admin, the decision to the staff member."""
    NEW_RESCHEDULE = "new_reschedule"
    RESCHEDULE_APPROVED = "reschedule_approved"
    RESCHEDULE_REJECTED = "reschedule_rejected"


class RequestFlow(str, Enum):
    """Request workflows with their own notification endpoint."""
    PURCHASE = "purchase"
    SCRAP = "scrap"
    GROCERY = "grocery"
    ASSET = "asset"


class RequestNotificationKind(str, Enum):
    """
    Request notification emails. Every flow accepts the first three;
    the rest belong to purchase requisitions.
    """
    NEW_REQUEST = "new_request"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUBMISSION = "submission"
    STATUS_UPDATE = "status_update"
    PRODUCT_UPLOADED = "product_uploaded"
    PRODUCT_VERIFIED = "product_verified"
    PRODUCT_REJECTED = "product_rejected"
    ASSET_CREATED = "asset_created"
    DUPLICATE_SERIAL = "duplicate_serial"


class SupportCategory(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    QUESTION = "question"
    OTHER = "other"


class SupportPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ==================== NOTIFICATION CONSTANTS ====================

class NotificationType(str, Enum):
    """Notification row types."""
    TASK_ASSIGNMENT = "task_assignment"
    TASK_UPDATE = "task_update"
    TASK_DELEGATION = "task_delegation"
    TASK_STATUS_UPDATE = "task_status_update"
    TASK_DELEGATION_RECEIVED = "task_delegation_received"
    TASK_PROOF_UPLOAD = "task_proof_upload"
    TASK_PROOF_VERIFIED = "task_proof_verified"
    TASK_PROOF_REJECTED = "task_proof_rejected"
    TASK_RESCHEDULE_REQUEST = "task_reschedule_request"
    TASK_RESCHEDULE_APPROVED = "task_reschedule_approved"
    TASK_RESCHEDULE_REJECTED = "task_reschedule_rejected"
    CASHBOOK_ENTRY = "cashbook_entry"
    CASHBOOK_VERIFICATION_REQUIRED = "cashbook_verification_required"
    CASHBOOK_TRANSACTION_APPROVED = "cashbook_transaction_approved"
    CASHBOOK_TRANSACTION_REJECTED = "cashbook_transaction_rejected"
    MAINTENANCE_REQUEST = "maintenance_request"
    MAINTENANCE_STATUS_UPDATE = "maintenance_status_update"
    PURCHASE_REQUEST = "purchase_request"
    PURCHASE_STATUS_UPDATE = "purchase_status_update"
    SCRAP_REQUEST = "scrap_request"
    SCRAP_STATUS_UPDATE = "scrap_status_update"


# Inbox categories, in display order
NOTIFICATION_CATEGORIES: Dict[str, List[str]] = {
    "tasks": [
        NotificationType.TASK_ASSIGNMENT.value,
        NotificationType.TASK_UPDATE.value,
        NotificationType.TASK_DELEGATION.value,
        NotificationType.TASK_STATUS_UPDATE.value,
        NotificationType.TASK_DELEGATION_RECEIVED.value,
    ],
    "proofs": [
        NotificationType.TASK_PROOF_UPLOAD.value,
        NotificationType.TASK_PROOF_VERIFIED.value,
        NotificationType.TASK_PROOF_REJECTED.value,
    ],
    "reschedules": [
        NotificationType.TASK_RESCHEDULE_REQUEST.value,
        NotificationType.TASK_RESCHEDULE_APPROVED.value,
        NotificationType.TASK_RESCHEDULE_REJECTED.value,
    ],
    "cashbook": [
        NotificationType.CASHBOOK_ENTRY.value,
        NotificationType.CASHBOOK_VERIFICATION_REQUIRED.value,
        NotificationType.CASHBOOK_TRANSACTION_APPROVED.value,
        NotificationType.CASHBOOK_TRANSACTION_REJECTED.value,
    ],
    "maintenance": [
        NotificationType.MAINTENANCE_REQUEST.value,
        NotificationType.MAINTENANCE_STATUS_UPDATE.value,
    ],
    "purchase": [
        NotificationType.PURCHASE_REQUEST.value,
        NotificationType.PURCHASE_STATUS_UPDATE.value,
    ],
    "scrap": [
        NotificationType.SCRAP_REQUEST.value,
        NotificationType.SCRAP_STATUS_UPDATE.value,
    ],
}

NOTIFICATION_CATEGORY_LABELS: Dict[str, str] = {
    "tasks": "Tasks",
    "proofs": "Proofs",
    "reschedules": "Reschedules",
    "cashbook": "Cashbook",
    "maintenance": "Maintenance",
    "purchase": "Purchase",
    "scrap": "Scrap",
}


# ==================== OPERATIONS CONSTANTS ====================

class TaskStatus(str, Enum):
    """Task workflow status."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AttendanceStatus(str, Enum):
    """Attendance outcome for a day."""
    PRESENT = "present"
    ABSENT = "absent"
    LEAVE = "leave"


class RequestStatus(str, Enum):
    """Status shared by maintenance, purchase, scrap and grocery requests."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


DAILY_REPORT_TOP_PERFORMERS = 5
DAILY_REPORT_TEAM_LIMIT = 5


# ==================== ERROR CODES ====================

class ErrorCode(str, Enum):
    """Application error codes."""
    # Authentication
    INVALID_CREDENTIALS = "AUTH_001"
    TOKEN_EXPIRED = "AUTH_002"
    INSUFFICIENT_PERMISSIONS = "AUTH_003"
    ACCOUNT_DISABLED = "AUTH_004"

    # Validation
    INVALID_INPUT = "VAL_001"
    REQUIRED_FIELD_MISSING = "VAL_002"
    INVALID_FORMAT = "VAL_003"

    # Business logic
    INVALID_STATE_TRANSITION = "BIZ_001"
    OPERATION_NOT_ALLOWED = "BIZ_006"

    # System
    DATABASE_ERROR = "SYS_001"
    EMAIL_DELIVERY_ERROR = "SYS_002"
    INTERNAL_ERROR = "SYS_999"

    # Resources
    RESOURCE_NOT_FOUND = "RES_001"
    RESOURCE_CONFLICT = "RES_002"
