"""
Module: auth_service
Purpose: Login for staff and admins, and resolution of the request context from a token
Author: Portal Development Team
Date: 2024
"""

from typing import Any, Dict, Optional, Union
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.constants import UserType
from portal.core.exceptions import (
    InvalidCredentialsException, AccountDisabledException, AuthenticationException
)
from portal.core.security import security_manager
from portal.db.models import Staff, Admin
from portal.repositories.user_repository import StaffRepository, AdminRepository
from portal.schemas.auth import LoginRequest, LoginResponse, RequestContext
from portal.utils.logger import get_logger


class AuthenticationService:
    """
    Authentication service.
    Staff and admins live in separate tables; the token carries which one.
    """

    def __init__(self, db: Session):
        self.db = db
        self.staff_repo = StaffRepository(db)
        self.admin_repo = AdminRepository(db)
        self.logger = get_logger(self.__class__.__name__)

    # ==================== AUTHENTICATION METHODS ====================

    def authenticate(self, login_data: LoginRequest, ip_address: Optional[str] = None) -> LoginResponse:
        """
        Authenticate an admin or staff member by email and password.

        Args:
            login_data: Login credentials
            ip_address: Client address for the security log

        Returns:
            LoginResponse: Access token and the resolved context

        Raises:
            InvalidCredentialsException: If the email or password is wrong
            AccountDisabledException: If the staff account is inactive
        """
        email = login_data.email
        password = login_data.password.get_secret_value()

        account: Optional[Union[Admin, Staff]] = self.admin_repo.get_by_email(email)
        user_type = UserType.ADMIN
        if account is None:
            account = self.staff_repo.get_by_email(email)
            user_type = UserType.STAFF

        if account is None or not security_manager.verify_password(password, account.hashed_password):
            self.logger.log_security_event(
                event_type="login_failed",
                severity="medium",
                description=f"Failed login for {email}",
                ip_address=ip_address
            )
            raise InvalidCredentialsException()

        if user_type == UserType.STAFF and not account.is_active:
            self.logger.log_security_event(
                event_type="login_disabled_account",
                severity="medium",
                description=f"Login attempt on disabled account {email}",
                user_id=account.id,
                ip_address=ip_address
            )
            raise AccountDisabledException()

        context = self.build_context(account, user_type)
        token = security_manager.create_access_token({
            "sub": account.id,
            "user_type": user_type.value,
        })

        self.logger.log_user_activity(
            user_id=account.id,
            action="login",
            ip_address=ip_address,
            user_type=user_type.value
        )
        return LoginResponse(
            access_token=token,
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=context,
        )

    def resolve_context(self, payload: Dict[str, Any]) -> RequestContext:
        """
        Load the account a verified token payload points at.

        Raises:
            InvalidCredentialsException: If the account no longer exists
            AccountDisabledException: If the staff account is inactive
        """
        try:
            user_type = UserType(payload.get("user_type", UserType.STAFF.value))
        except ValueError:
            raise AuthenticationException(message="Invalid token", details={"reason": "unknown_user_type"})

        repo = self.admin_repo if user_type == UserType.ADMIN else self.staff_repo
        account = repo.get_by_id(payload["sub"])
        if account is None:
            raise InvalidCredentialsException(details={"reason": "account_not_found"})
        if user_type == UserType.STAFF and not account.is_active:
            raise AccountDisabledException()

        return self.build_context(account, user_type)

    @staticmethod
    def build_context(account: Union[Admin, Staff], user_type: UserType) -> RequestContext:
        if user_type == UserType.ADMIN:
            return RequestContext(
                user_id=account.id,
                user_type=user_type,
                name=account.name,
                email=account.email,
            )
        return RequestContext(
            user_id=account.id,
            user_type=user_type,
            name=account.name,
            email=account.email,
            branch=account.branch,
            role=account.role,
        )
