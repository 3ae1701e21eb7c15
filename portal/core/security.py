"""
Module: security
Purpose: Password hashing, JWT access tokens and shared-secret comparison
"""

import hmac
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from portal.core.config import settings
from portal.core.constants import TokenType
from portal.core.exceptions import AuthenticationException, TokenExpiredException

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class SecurityManager:
    """Signs and checks the bearer tokens issued at login."""

    def __init__(self, secret_key: str, algorithm: str, expire_minutes: int):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
        """False for a missing or unrecognised hash instead of raising."""
        if not hashed_password:
            return False
        try:
            return pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            return False

    def create_access_token(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """
        Encode ``claims`` (at least ``sub`` and ``user_type``) as an access token.

        A negative ``expires_delta`` yields an already expired token.
        """
        issued = datetime.utcnow()
        lifetime = expires_delta if expires_delta is not None else timedelta(minutes=self.expire_minutes)
        payload = dict(claims)
        payload.update(
            exp=issued + lifetime,
            iat=issued,
            type=TokenType.ACCESS.value,
            jti=secrets.token_urlsafe(16),
        )
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, token_type: str = TokenType.ACCESS.value) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredException()
        except JWTError as e:
            raise AuthenticationException(message="Invalid token", details={"jwt_error": str(e)})

        if payload.get("type") != token_type:
            raise AuthenticationException(
                message=f"Invalid token type. Expected: {token_type}",
                details={"expected_type": token_type, "actual_type": payload.get("type")}
            )
        if not payload.get("sub"):
            raise AuthenticationException(message="Token has no subject")
        return payload


security_manager = SecurityManager(
    settings.SECRET_KEY, settings.ALGORITHM, settings.ACCESS_TOKEN_EXPIRE_MINUTES
)

get_password_hash = security_manager.get_password_hash
verify_password = security_manager.verify_password
create_access_token = security_manager.create_access_token
verify_token = security_manager.verify_token


def secure_compare(a: Optional[str], b: Optional[str]) -> bool:
    """Constant-time equality; False when either side is empty."""
    if not a or not b:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))
