"""
Module: exceptions
Purpose: Exception hierarchy for the operations portal

Every exception is an ``HTTPException`` carrying an ``ErrorCode``; the
handlers in ``portal.main`` render them as::

    {"success": false, "error": ..., "error_code": ..., "details": {...}, "path": ..., "timestamp": ...}
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

from portal.core.constants import ErrorCode

Details = Optional[Dict[str, Any]]


class PortalException(HTTPException):
    """Base class: an HTTP status plus an application error code."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str,
        details: Details = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


# Authentication (401 / 403)

class AuthenticationException(PortalException):
    """401 with a ``WWW-Authenticate: Bearer`` challenge."""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = ErrorCode.INVALID_CREDENTIALS.value,
        details: Details = None
    ):
        super().__init__(
            status.HTTP_401_UNAUTHORIZED,
            message,
            error_code,
            details=details,
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidCredentialsException(AuthenticationException):
    def __init__(self, details: Details = None):
        super().__init__("Invalid email or password", ErrorCode.INVALID_CREDENTIALS.value, details)


class TokenExpiredException(AuthenticationException):
    def __init__(self, details: Details = None):
        super().__init__("Access token is invalid or has expired", ErrorCode.TOKEN_EXPIRED.value, details)


class AccountDisabledException(AuthenticationException):
    def __init__(self, details: Details = None):
        super().__init__("Account is disabled", ErrorCode.ACCOUNT_DISABLED.value, details)


class InsufficientPermissionsException(PortalException):
    """The caller is authenticated but may not perform the operation."""

    def __init__(self, required_permission: Optional[str] = None, details: Details = None):
        message = "Insufficient permissions"
        if required_permission:
            message = f"{message}: {required_permission} required"
        super().__init__(
            status.HTTP_403_FORBIDDEN,
            message,
            ErrorCode.INSUFFICIENT_PERMISSIONS.value,
            details=details or {"required_permission": required_permission}
        )


# Validation (400)

class ValidationException(PortalException):
    def __init__(self, message: str, error_code: str = ErrorCode.INVALID_INPUT.value, details: Details = None):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, error_code, details=details)


class RequiredFieldMissingException(ValidationException):
    """Names every missing field, not just the first."""

    def __init__(self, field_names: List[str], details: Details = None):
        if len(field_names) == 1:
            message = f"Required field '{field_names[0]}' is missing"
        else:
            message = f"Missing required fields: {', '.join(field_names)}"
        super().__init__(
            message,
            ErrorCode.REQUIRED_FIELD_MISSING.value,
            details or {"missing_fields": field_names}
        )


class InvalidFormatException(ValidationException):
    def __init__(self, field_name: str, expected_format: str, details: Details = None):
        super().__init__(
            f"Invalid format for '{field_name}'. Expected: {expected_format}",
            ErrorCode.INVALID_FORMAT.value,
            details or {"field_name": field_name, "expected_format": expected_format}
        )


def require_fields(payload: Dict[str, Any], field_names: List[str]) -> None:
    """Raise ``RequiredFieldMissingException`` for every absent or blank field."""
    missing = []
    for name in field_names:
        value = payload.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(name)
    if missing:
        raise RequiredFieldMissingException(missing)


# Business rules (400)

class BusinessLogicException(PortalException):
    def __init__(
        self,
        message: str,
        error_code: str = ErrorCode.OPERATION_NOT_ALLOWED.value,
        details: Details = None
    ):
        super().__init__(status.HTTP_400_BAD_REQUEST, message, error_code, details=details)


class InvalidStateTransitionException(BusinessLogicException):
    """Approving or rejecting a transaction that already left ``pending``."""

    def __init__(self, resource_type: str, current_state: str, target_state: str, details: Details = None):
        super().__init__(
            f"{resource_type} is already {current_state} and cannot be {target_state}",
            ErrorCode.INVALID_STATE_TRANSITION.value,
            details or {"current_state": current_state, "target_state": target_state}
        )


# Resources (404 / 409)

class ResourceNotFoundException(PortalException):
    def __init__(self, resource_type: str, resource_id: str, details: Details = None):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"{resource_type} with ID '{resource_id}' not found",
            ErrorCode.RESOURCE_NOT_FOUND.value,
            details=details or {"resource_type": resource_type, "resource_id": resource_id}
        )


class ResourceConflictException(PortalException):
    def __init__(self, resource_type: str, conflict_reason: str, details: Details = None):
        super().__init__(
            status.HTTP_409_CONFLICT,
            f"{resource_type} conflict: {conflict_reason}",
            ErrorCode.RESOURCE_CONFLICT.value,
            details=details or {"resource_type": resource_type, "conflict_reason": conflict_reason}
        )


# System (500)

class SystemException(PortalException):
    def __init__(self, message: str, error_code: str = ErrorCode.INTERNAL_ERROR.value, details: Details = None):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, message, error_code, details=details)


class DatabaseException(SystemException):
    def __init__(self, operation: str, original_error: Optional[str] = None, details: Details = None):
        super().__init__(
            original_error or f"Database error during {operation}",
            ErrorCode.DATABASE_ERROR.value,
            details or {"operation": operation, "original_error": original_error}
        )


class EmailDeliveryException(SystemException):
    """Raised by a transport when the mail server does not accept a message."""

    def __init__(self, recipients: List[str], original_error: Optional[str] = None, details: Details = None):
        super().__init__(
            f"Email delivery failed: {original_error or 'unknown error'}",
            ErrorCode.EMAIL_DELIVERY_ERROR.value,
            details or {"recipients": recipients, "original_error": original_error}
        )


def handle_database_exception(error: Exception, operation: str) -> DatabaseException:
    """Wrap a SQLAlchemy error raised during ``operation``."""
    return DatabaseException(
        operation,
        str(error),
        details={"error_type": type(error).__name__, "operation": operation}
    )
