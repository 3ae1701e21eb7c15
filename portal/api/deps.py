"""
Module: deps
Purpose: FastAPI dependencies for the database session, mail transport, request context and cron auth
Author: Portal Development Team
Date: 2024
"""

from typing import Optional
from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.exceptions import (
    AuthenticationException, InsufficientPermissionsException
)
from portal.core.security import security_manager, secure_compare
from portal.db.database import get_db
from portal.schemas.auth import RequestContext
from portal.services.auth_service import AuthenticationService
from portal.services.mailer import EmailTransport, get_email_transport
from portal.utils.logger import get_logger

logger = get_logger(__name__)

# Missing credentials are reported by get_request_context as a 401
security = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_email_transport",
    "EmailTransport",
    "get_request_context",
    "require_admin",
    "verify_cron_secret",
    "extract_client_ip",
]


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> RequestContext:
    """
    Resolve the authenticated actor from the bearer token.

    Args:
        credentials: Bearer token credentials
        db: Database session

    Returns:
        RequestContext: Staff member or admin behind the token

    Raises:
        AuthenticationException: If the token is missing or invalid
        TokenExpiredException: If the token has expired
        AccountDisabledException: If the staff account is inactive
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationException(message="Not authenticated", details={"reason": "missing_token"})

    payload = security_manager.verify_token(credentials.credentials)
    return AuthenticationService(db).resolve_context(payload)


def require_admin(context: RequestContext = Depends(get_request_context)) -> RequestContext:
    """
    Dependency to ensure the caller is an admin.

    Raises:
        InsufficientPermissionsException: If the caller is not an admin
    """
    if not context.is_admin:
        raise InsufficientPermissionsException(required_permission="admin")
    return context


def verify_cron_secret(request: Request, secret: Optional[str] = Query(default=None)) -> None:
    """
    Accept scheduler calls carrying CRON_SECRET as a bearer token or ?secret=.

    Raises:
        AuthenticationException: If the secret is missing, wrong, or not configured
    """
    expected = settings.CRON_SECRET
    authorization = request.headers.get("authorization", "")
    bearer = authorization[7:] if authorization.lower().startswith("bearer ") else None

    if not expected or not (secure_compare(bearer, expected) or secure_compare(secret, expected)):
        logger.log_security_event(
            event_type="cron_unauthorized",
            severity="medium",
            description=f"Rejected scheduler call to {request.url.path}",
            ip_address=extract_client_ip(request)
        )
        raise AuthenticationException(message="Unauthorized", details={"reason": "invalid_cron_secret"})


def extract_client_ip(request: Request) -> str:
    """Client address, honouring X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
