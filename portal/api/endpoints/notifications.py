"""
Module: notifications
Purpose: Notification inbox endpoints for the authenticated user
Author: Portal Development Team
Date: 2024
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_request_context
from portal.schemas.auth import RequestContext
from portal.schemas.common import CountResponse, DataResponse
from portal.schemas.notification import (
    NotificationResponse, NotificationCategoriesResponse, MarkCategoryRequest, MarkViewedResponse
)
from portal.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=DataResponse[List[NotificationResponse]])
def list_notifications(
    unviewed_only: bool = Query(default=False),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    notifications = NotificationService(db).list_notifications(
        context.user_id, unviewed_only=unviewed_only, limit=limit
    )
    return DataResponse(data=[NotificationResponse.model_validate(n) for n in notifications])


@router.get("/count", response_model=CountResponse)
def count_unviewed(
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    return CountResponse(count=NotificationService(db).count_unviewed(context.user_id))


@router.get("/categories", response_model=NotificationCategoriesResponse)
def get_categories(
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Unviewed notifications grouped into inbox categories."""
    return NotificationService(db).get_categories(context.user_id)


@router.post("/mark-all-viewed", response_model=MarkViewedResponse)
def mark_all_viewed(
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    return MarkViewedResponse(updated=NotificationService(db).mark_all_viewed(context.user_id))


@router.post("/mark-category-viewed", response_model=MarkViewedResponse)
def mark_category_viewed(
    payload: MarkCategoryRequest,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    updated = NotificationService(db).mark_category_viewed(context.user_id, payload.category)
    return MarkViewedResponse(updated=updated)


@router.post("/{notification_id}/viewed", response_model=DataResponse[NotificationResponse])
def mark_viewed(
    notification_id: str,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    notification = NotificationService(db).mark_viewed(context.user_id, notification_id)
    return DataResponse(data=NotificationResponse.model_validate(notification))
