"""
Module: auth
Purpose: Login schemas and the request context resolved from a bearer token
Author: Portal Development Team
Date: 2024
"""

from typing import Optional
from pydantic import BaseModel, Field, EmailStr, SecretStr, field_validator

from portal.core.constants import UserType


# ==================== REQUEST CONTEXT ====================

class RequestContext(BaseModel):
    """
    The authenticated actor of a request.
    Passed explicitly into services instead of living in ambient state.
    """

    user_id: str = Field(..., description="Staff or admin id")
    user_type: UserType = Field(..., description="staff or admin")
    name: Optional[str] = Field(default=None, description="Display name")
    email: Optional[str] = Field(default=None, description="Email address")
    branch: Optional[str] = Field(default=None, description="Branch of a staff member")
    role: Optional[str] = Field(default=None, description="Staff role")

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

    @property
    def is_accountant(self) -> bool:
        return self.role == "accountant"


# ==================== LOGIN SCHEMAS ====================

class LoginRequest(BaseModel):
    """Schema for login requests."""

    email: EmailStr = Field(..., description="Account email address")
    password: SecretStr = Field(..., min_length=1, max_length=128, description="Account password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class LoginResponse(BaseModel):
    """Access token and the context it resolves to."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: RequestContext = Field(..., description="Authenticated account")
