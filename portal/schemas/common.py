"""
Module: common
Purpose: Response envelopes shared by every endpoint
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from typing import Any, Dict, Generic, Optional, TypeVar
from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class BaseResponse(BaseModel):
    """Base response schema with common fields."""

    success: bool = Field(default=True, description="Operation success status")
    message: str = Field(default="Operation completed successfully", description="Response message")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Response timestamp")


class DataResponse(BaseResponse, Generic[DataT]):
    """Envelope carrying a payload."""

    data: Optional[DataT] = Field(default=None, description="Response payload")


class ErrorResponse(BaseModel):
    """Error body produced by the exception handlers."""

    success: bool = Field(default=False, description="Always false")
    error: str = Field(description="Error message")
    error_code: Optional[str] = Field(default=None, description="Application-specific error code")
    details: Optional[Any] = Field(default=None, description="Additional error details")
    path: Optional[str] = Field(default=None, description="Request path")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the error occurred")


class CountResponse(BaseResponse):
    """Response carrying a single count."""

    count: int = Field(default=0, description="Count")


def error_body(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Any] = None,
    path: Optional[str] = None
) -> Dict[str, Any]:
    """JSON-ready error body."""
    return ErrorResponse(
        error=message,
        error_code=error_code,
        details=details,
        path=path,
    ).model_dump(mode="json")
