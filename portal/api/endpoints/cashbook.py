"""
Module: cashbook
Purpose: Cashbook endpoints - transactions, approval workflow, summaries, ledgers and vouchers
Author: Portal Development Team
Date: 2024
"""

from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from portal.api.deps import get_db, get_email_transport, get_request_context, EmailTransport
from portal.schemas.auth import RequestContext
from portal.schemas.cashbook import (
    CashTransactionCreate, CashTransactionUpdate, CashTransactionResponse,
    VerificationRequest, CashbookSummary, LedgerResponse,
    VoucherNumberRequest, VoucherNumberResponse
)
from portal.schemas.common import BaseResponse, DataResponse
from portal.services.cashbook_service import CashbookService
from portal.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/cashbook", tags=["Cashbook"])


# ==================== TRANSACTIONS ====================

@router.get("/transactions", response_model=DataResponse[List[CashTransactionResponse]])
def list_transactions(
    branch: Optional[str] = Query(default=None, description="Branch filter"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    include_pending: bool = Query(default=False),
    include_rejected: Optional[bool] = Query(default=None, description="Defaults to include_pending"),
    staff_id: Optional[str] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """
    List transactions newest first.

    Approved rows are always returned; pending and rejected rows on request.
    """
    transactions = CashbookService(db).list_transactions(
        branch=branch,
        start_date=start_date,
        end_date=end_date,
        include_pending=include_pending,
        include_rejected=include_rejected,
        staff_id=staff_id,
    )
    return DataResponse(
        message=f"{len(transactions)} transaction(s)",
        data=[CashTransactionResponse.model_validate(t) for t in transactions],
    )


@router.post(
    "/transactions",
    response_model=DataResponse[CashTransactionResponse],
    status_code=status.HTTP_201_CREATED
)
def create_transaction(
    payload: CashTransactionCreate,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """
    Record a cash movement for the caller's branch (or the given one).

    The branch's auto-approve setting decides whether the entry is posted
    immediately or waits for an accountant.
    """
    transaction = CashbookService(db, transport).create_transaction(context, payload)
    return DataResponse(
        message="Transaction added" if transaction.is_approved else "Transaction submitted for verification",
        data=CashTransactionResponse.model_validate(transaction),
    )


@router.patch("/transactions/{transaction_id}", response_model=DataResponse[CashTransactionResponse])
def update_transaction(
    transaction_id: str,
    payload: CashTransactionUpdate,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    transaction = CashbookService(db).update_transaction(context, transaction_id, payload)
    return DataResponse(
        message="Transaction updated",
        data=CashTransactionResponse.model_validate(transaction),
    )


@router.delete("/transactions/{transaction_id}", response_model=BaseResponse)
def delete_transaction(
    transaction_id: str,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    CashbookService(db).delete_transaction(context, transaction_id)
    return BaseResponse(message="Transaction deleted")


# ==================== APPROVAL WORKFLOW ====================

@router.post("/transactions/approve", response_model=DataResponse[CashTransactionResponse])
def approve_transaction(
    payload: VerificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """
    Approve a pending transaction.

    Posts it on top of the branch's latest approved balance, notifies the
    submitter and the admins, and emails them.
    """
    transaction = CashbookService(db, transport).approve_transaction(
        payload.id, payload.verifier_id, payload.note
    )
    return DataResponse(
        message="Transaction approved",
        data=CashTransactionResponse.model_validate(transaction),
    )


@router.post("/transactions/reject", response_model=DataResponse[CashTransactionResponse])
def reject_transaction(
    payload: VerificationRequest,
    db: Session = Depends(get_db),
    transport: EmailTransport = Depends(get_email_transport)
):
    """Reject a pending transaction; its stored balance is left as it is."""
    transaction = CashbookService(db, transport).reject_transaction(
        payload.id, payload.verifier_id, payload.note
    )
    return DataResponse(
        message="Transaction rejected",
        data=CashTransactionResponse.model_validate(transaction),
    )


# ==================== REPORTING ====================

@router.get("/summary", response_model=DataResponse[CashbookSummary])
def get_summary(
    branch: str = Query(..., description="Branch"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    summary = CashbookService(db).get_summary(branch, start_date, end_date)
    return DataResponse(data=CashbookSummary(**summary))


@router.get("/ledger", response_model=DataResponse[LedgerResponse])
def get_ledger(
    branch: str = Query(..., description="Branch"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """
    Approved movements oldest first with running balances recomputed from
    the opening balance. Stored balances are returned alongside for comparison.
    """
    ledger = CashbookService(db).get_ledger(branch, start_date, end_date)
    return DataResponse(data=LedgerResponse.model_validate(ledger))


# ==================== VOUCHERS ====================

@router.post("/voucher-number", response_model=VoucherNumberResponse)
def next_voucher_number(
    payload: VoucherNumberRequest,
    context: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db)
):
    """Next free CI/CO voucher number of a branch for the current year."""
    return CashbookService(db).next_voucher_number(payload.branch, payload.type)
