"""
Module: notification
Purpose: Inbox schemas
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    reference_id: Optional[str] = None
    reference_table: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_viewed: bool
    viewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationCategory(BaseModel):
    key: str
    label: str
    count: int
    types: List[str]


class NotificationCategoriesResponse(BaseModel):
    """Unviewed notifications per inbox category."""

    categories: List[NotificationCategory]
    total: int


class MarkCategoryRequest(BaseModel):
    category: str = Field(..., min_length=1, description="Inbox category key, e.g. cashbook")


class MarkViewedResponse(BaseModel):
    success: bool = True
    updated: int = Field(..., description="Notifications marked viewed")
