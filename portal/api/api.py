"""
Module: api
Purpose: API router aggregation
Author: Portal Development Team
Date: 2024
"""

from fastapi import APIRouter

from portal.api.endpoints import auth, cashbook, opening_balance, notifications, email, support, cron

# ==================== MAIN API ROUTER ====================

api_router = APIRouter()

api_router.include_router(
    auth.router,
    responses={401: {"description": "Unauthorized - Invalid credentials"}}
)

api_router.include_router(
    cashbook.router,
    responses={
        400: {"description": "Bad Request - Invalid input or state"},
        401: {"description": "Unauthorized - Authentication required"},
        404: {"description": "Not Found - Transaction not found"},
        409: {"description": "Conflict - Voucher numbers exhausted"}
    }
)

api_router.include_router(
    opening_balance.router,
    responses={
        401: {"description": "Unauthorized - Authentication required"},
        403: {"description": "Forbidden - Admin only"},
        404: {"description": "Not Found - Branch has no opening balance"}
    }
)

api_router.include_router(
    notifications.router,
    responses={401: {"description": "Unauthorized - Authentication required"}}
)

api_router.include_router(
    email.router,
    responses={
        400: {"description": "Bad Request - Missing fields or unknown type"},
        404: {"description": "Not Found - Task, reschedule, staff member or proof not found"}
    }
)

api_router.include_router(
    support.router,
    responses={400: {"description": "Bad Request - Missing fields or no support recipients"}}
)

api_router.include_router(
    cron.router,
    responses={401: {"description": "Unauthorized - Invalid cron secret"}}
)
