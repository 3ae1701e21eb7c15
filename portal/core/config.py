"""
Module: config
Purpose: Environment-driven settings for the operations portal
"""

import secrets
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """
    Every field can be overridden by an environment variable of the same
    name or by a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Operations Portal"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    APP_URL: str = "http://localhost:3000"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    TESTING: bool = False

    # Tokens
    SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "portal_user"
    POSTGRES_PASSWORD: str = "portal_password"
    POSTGRES_DB: str = "portal_db"
    POSTGRES_PORT: int = 5432
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600

    # Email
    SMTP_TLS: bool = True
    SMTP_PORT: int = 587
    SMTP_HOST: Optional[str] = None
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_TIMEOUT: int = 10
    EMAILS_FROM_EMAIL: Optional[str] = None
    EMAILS_FROM_NAME: str = "Operations Portal"
    EMAIL_MAX_ATTEMPTS: int = 3

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = "logs/portal.log"
    LOG_MAX_SIZE: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5
    LOG_JSON_FORMAT: bool = False

    # Cashbook
    LOW_BALANCE_THRESHOLD: Decimal = Decimal("500")
    CASHBOOK_AUTO_APPROVE_DEFAULT: bool = True
    CURRENCY_SYMBOL: str = "₹"
    VOUCHER_MAX_ATTEMPTS: int = 3

    # Scheduled report
    CRON_SECRET: Optional[str] = None
    DAILY_REPORT_RECIPIENTS: Annotated[List[str], NoDecode] = Field(default_factory=list)

    # Help desk reports; falls back to every admin when empty
    SUPPORT_REPORT_RECIPIENTS: Annotated[List[str], NoDecode] = Field(default_factory=list)

    # Bootstrap data for init_db
    FIRST_ADMIN_NAME: str = "Administrator"
    FIRST_ADMIN_EMAIL: str = "admin@example.com"
    FIRST_ADMIN_PASSWORD: str = "ChangeMe123!"
    SEED_BRANCHES: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["Main Branch"])

    @field_validator(
        "BACKEND_CORS_ORIGINS", "DAILY_REPORT_RECIPIENTS", "SUPPORT_REPORT_RECIPIENTS", "SEED_BRANCHES", mode="before"
    )
    @classmethod
    def split_comma_list(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        """Accept ``a,b,c`` as well as a JSON array."""
        if isinstance(v, str) and not v.startswith("["):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        """Fall back to a PostgreSQL URL built from the POSTGRES_* fields."""
        if isinstance(v, str) and v:
            return v
        values = info.data
        return (
            f"postgresql://{values.get('POSTGRES_USER')}:{values.get('POSTGRES_PASSWORD')}"
            f"@{values.get('POSTGRES_SERVER')}:{values.get('POSTGRES_PORT')}"
            f"/{values.get('POSTGRES_DB') or ''}"
        )

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v):
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    @field_validator("LOW_BALANCE_THRESHOLD")
    @classmethod
    def validate_low_balance_threshold(cls, v):
        if v < 0:
            raise ValueError("LOW_BALANCE_THRESHOLD must not be negative")
        return v

    @field_validator("EMAIL_MAX_ATTEMPTS", "VOUCHER_MAX_ATTEMPTS")
    @classmethod
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("attempt ceilings must be at least 1")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    @property
    def is_testing(self) -> bool:
        return self.TESTING or self.ENVIRONMENT.lower() == "test"

    @property
    def smtp_configured(self) -> bool:
        """A host and a sender address are the minimum for outgoing mail."""
        return bool(self.SMTP_HOST and self.EMAILS_FROM_EMAIL)

    def get_smtp_settings(self) -> Dict[str, Any]:
        return {
            "host": self.SMTP_HOST,
            "port": self.SMTP_PORT,
            "username": self.SMTP_USER,
            "password": self.SMTP_PASSWORD,
            "use_tls": self.SMTP_TLS,
            "timeout": self.SMTP_TIMEOUT,
            "from_email": self.EMAILS_FROM_EMAIL,
            "from_name": self.EMAILS_FROM_NAME,
        }


settings = Settings()


def validate_security_configuration() -> List[str]:
    """Warnings logged at startup when running in production."""
    warnings = []
    if not settings.is_production:
        return warnings

    if settings.DEBUG:
        warnings.append("DEBUG is enabled in production")
    if not settings.smtp_configured:
        warnings.append("SMTP is not configured; outgoing email stays in the outbox")
    if not settings.CRON_SECRET:
        warnings.append("CRON_SECRET is not set; the daily report endpoint will reject every call")
    return warnings


def get_cors_origins() -> List[str]:
    return [str(origin) for origin in settings.BACKEND_CORS_ORIGINS]
