"""
Module: opening_balance
Purpose: Branch opening balance endpoints
Author: Portal Development Team
Date: 2024
"""

from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_request_context, require_admin
from portal.schemas.auth import RequestContext
from portal.schemas.common import BaseResponse, DataResponse
from portal.schemas.opening_balance import (
    OpeningBalanceSet, OpeningBalanceAppend, OpeningBalanceResponse
)
from portal.services.opening_balance_service import OpeningBalanceService

router = APIRouter(prefix="/opening-balance", tags=["Opening Balance"])


@router.get("", response_model=DataResponse[List[OpeningBalanceResponse]])
def list_opening_balances(
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    balances = OpeningBalanceService(db).list_balances()
    return DataResponse(data=[OpeningBalanceResponse.model_validate(b) for b in balances])


@router.post("/append", response_model=DataResponse[OpeningBalanceResponse])
def append_opening_balance(
    payload: OpeningBalanceAppend,
    context: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Append an adjustment to a branch's history.
    The amount (positive or negative) is added to the opening balance.
    """
    balance = OpeningBalanceService(db).append_entry(context, payload)
    return DataResponse(
        message="Opening balance entry added",
        data=OpeningBalanceResponse.model_validate(balance),
    )


@router.get("/{branch}", response_model=DataResponse[OpeningBalanceResponse])
def get_opening_balance(
    branch: str,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    balance = OpeningBalanceService(db).get_balance(branch)
    return DataResponse(data=OpeningBalanceResponse.model_validate(balance))


@router.put("/{branch}", response_model=DataResponse[OpeningBalanceResponse])
def set_opening_balance(
    branch: str,
    payload: OpeningBalanceSet,
    context: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Overwrite (or create) a branch's opening balance and optionally its auto-approve flag."""
    balance = OpeningBalanceService(db).set_balance(context, branch, payload)
    return DataResponse(
        message="Opening balance saved",
        data=OpeningBalanceResponse.model_validate(balance),
    )


@router.delete("/{branch}", response_model=BaseResponse)
def delete_opening_balance(
    branch: str,
    context: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db)
):
    OpeningBalanceService(db).delete_balance(context, branch)
    return BaseResponse(message="Opening balance deleted")
