"""
Module: auth
Purpose: Login and current-context endpoints
Author: Portal Development Team
Date: 2024
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_request_context, extract_client_ip
from portal.schemas.auth import LoginRequest, LoginResponse, RequestContext
from portal.services.auth_service import AuthenticationService
from portal.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=LoginResponse)
def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Staff or admin login.

    Returns a bearer token whose context (staff or admin) is resolved on
    every request.
    """
    response = AuthenticationService(db).authenticate(login_data, extract_client_ip(request))
    logger.info(f"Successful login for {response.user.user_type.value} {response.user.user_id}")
    return response


@router.get("/me", response_model=RequestContext)
def read_current_context(context: RequestContext = Depends(get_request_context)):
    return context
