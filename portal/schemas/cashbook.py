"""
Module: cashbook
Purpose: Request and response schemas for cash transactions, summaries, ledgers and vouchers
Author: Portal Development Team
Date: 2024
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from portal.core.constants import BillStatus, VerificationStatus


def _check_amounts(cash_in: Optional[Decimal], cash_out: Optional[Decimal]) -> None:
    if (cash_in or 0) > 0 and (cash_out or 0) > 0:
        raise ValueError("A transaction is either cash in or cash out, not both")


# ==================== TRANSACTION REQUESTS ====================

class CashTransactionCreate(BaseModel):
    """Schema for recording a cash movement."""

    branch: Optional[str] = Field(default=None, max_length=100, description="Branch (defaults to the caller's)")
    transaction_date: date = Field(..., description="Date of the movement")
    voucher_no: Optional[str] = Field(default=None, max_length=30, description="Voucher number (allocated when empty)")
    primary_list: Optional[str] = Field(default=None, max_length=150, description="Category")
    nature_of_expense: Optional[str] = Field(default=None, max_length=255, description="Sub-category / description")
    bill_status: Optional[BillStatus] = Field(default=None, description="Bill status")
    cash_in: Decimal = Field(default=Decimal("0"), ge=0, max_digits=15, decimal_places=2, description="Money in")
    cash_out: Decimal = Field(default=Decimal("0"), ge=0, max_digits=15, decimal_places=2, description="Money out")
    attachment_urls: List[str] = Field(default_factory=list, description="Proof attachments")
    notes: Optional[str] = Field(default=None, description="Free-form notes")

    @field_validator("branch", "voucher_no", "primary_list", "nature_of_expense")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def validate_amounts(self):
        _check_amounts(self.cash_in, self.cash_out)
        if self.cash_in == 0 and self.cash_out == 0:
            raise ValueError("Either cash_in or cash_out must be greater than zero")
        return self


class CashTransactionUpdate(BaseModel):
    """
    Schema for editing a transaction.
    Balance and verification fields are not editable.
    """

    transaction_date: Optional[date] = None
    voucher_no: Optional[str] = Field(default=None, max_length=30)
    primary_list: Optional[str] = Field(default=None, max_length=150)
    nature_of_expense: Optional[str] = Field(default=None, max_length=255)
    bill_status: Optional[BillStatus] = None
    cash_in: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)
    cash_out: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)
    attachment_urls: Optional[List[str]] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def validate_amounts(self):
        _check_amounts(self.cash_in, self.cash_out)
        return self


class VerificationRequest(BaseModel):
    """Approve or reject a pending transaction."""

    id: str = Field(..., min_length=1, description="Transaction id")
    note: Optional[str] = Field(default=None, description="Verifier note")
    verifier_id: str = Field(..., min_length=1, description="Id of the verifying accountant or admin")


# ==================== TRANSACTION RESPONSES ====================

class CashTransactionResponse(BaseModel):
    """Schema for a stored transaction."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    branch: str
    staff_id: Optional[str] = None
    transaction_date: date
    voucher_no: Optional[str] = None
    primary_list: Optional[str] = None
    nature_of_expense: Optional[str] = None
    bill_status: Optional[str] = None
    cash_in: float
    cash_out: float
    balance: float
    verification_status: VerificationStatus
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    attachment_urls: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LedgerEntry(CashTransactionResponse):
    """A ledger line: stored balance next to the recomputed one."""

    calculated_balance: float = Field(..., description="Running balance folded from the opening balance")


class LedgerResponse(BaseModel):
    """Read-time ledger of a branch."""

    branch: str
    opening_balance: float
    closing_balance: float
    entries: List[LedgerEntry] = Field(default_factory=list)


class CashbookSummary(BaseModel):
    """Totals of approved movements for a branch."""

    branch: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    opening_balance: float
    total_cash_in: float
    total_cash_out: float
    closing_balance: float
    transaction_count: int


# ==================== VOUCHERS ====================

class VoucherNumberRequest(BaseModel):
    """Ask for the next voucher number of a branch."""

    branch: Optional[str] = Field(default=None, description="Branch")
    type: Optional[str] = Field(default=None, description="cash_in or cash_out")


class VoucherNumberResponse(BaseModel):
    voucher_no: str
    type: str
