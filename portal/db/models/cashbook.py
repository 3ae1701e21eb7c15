"""
Module: cashbook
Purpose: Cashbook models - branch cash movements and branch opening balances
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, Any, List
from sqlalchemy import (
    Column, String, Numeric, Boolean, Date, DateTime, Text,
    Index, CheckConstraint, JSON, or_
)
from sqlalchemy.orm import validates
from sqlalchemy.ext.hybrid import hybrid_property

from portal.db.base import BaseModel
from portal.core.constants import VerificationStatus, BillStatus, VERIFICATION_TRANSITIONS


class CashTransaction(BaseModel):
    """
    A single cash movement in a branch cashbook.

    Exactly one of cash_in / cash_out carries the amount, the other is zero.
    ``balance`` is the running branch balance right after this movement and is
    only meaningful once the row is approved; a pending row holds the balance
    that was current when it was submitted.
    """

    __tablename__ = "cash_transactions"

    branch = Column(
        String(100),
        nullable=False,
        index=True,
        comment="Branch whose cashbook this movement belongs to"
    )

    staff_id = Column(
        String(36),
        nullable=True,
        index=True,
        comment="Staff member (or admin) who submitted the entry"
    )

    transaction_date = Column(
        Date,
        nullable=False,
        default=date.today,
        index=True,
        comment="Business date of the movement"
    )

    voucher_no = Column(
        String(30),
        nullable=True,
        index=True,
        comment="Voucher number (CI/CO prefix)"
    )

    primary_list = Column(
        String(150),
        nullable=True,
        comment="Primary expense or income head"
    )

    nature_of_expense = Column(
        String(255),
        nullable=True,
        comment="Free-text nature of the expense"
    )

    bill_status = Column(
        String(20),
        nullable=True,
        comment="Paid, Pending, Cancelled, Yet to pay or Refund"
    )

    cash_in = Column(
        Numeric(precision=15, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Amount received"
    )

    cash_out = Column(
        Numeric(precision=15, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Amount paid out"
    )

    balance = Column(
        Numeric(precision=15, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Running branch balance after this movement"
    )

    # Approval workflow
    verification_status = Column(
        String(20),
        nullable=False,
        default=VerificationStatus.PENDING.value,
        index=True,
        comment="pending, approved or rejected"
    )

    verified_by = Column(
        String(36),
        nullable=True,
        comment="Verifier (or the creator for auto-approved rows)"
    )

    verified_at = Column(
        DateTime,
        nullable=True,
        index=True,
        comment="When the row was approved or rejected"
    )

    verification_notes = Column(
        Text,
        nullable=True,
        comment="Verifier note"
    )

    attachment_urls = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Proof attachments"
    )

    notes = Column(
        Text,
        nullable=True,
        comment="Internal notes"
    )

    __table_args__ = (
        CheckConstraint(
            verification_status.in_([s.value for s in VerificationStatus]),
            name="valid_verification_status"
        ),
        CheckConstraint(
            or_(bill_status.is_(None), bill_status.in_([b.value for b in BillStatus])),
            name="valid_bill_status"
        ),
        CheckConstraint("cash_in >= 0", name="non_negative_cash_in"),
        CheckConstraint("cash_out >= 0", name="non_negative_cash_out"),
        CheckConstraint("NOT (cash_in > 0 AND cash_out > 0)", name="single_direction_amount"),
        Index("idx_cash_transaction_branch_status", branch, verification_status),
        Index("idx_cash_transaction_branch_verified", branch, verified_at, transaction_date),
    )

    # Hybrid properties
    @hybrid_property
    def is_approved(self) -> bool:
        return self.verification_status == VerificationStatus.APPROVED.value

    @property
    def net_amount(self) -> Decimal:
        """Signed effect of this movement on the branch balance."""
        return Decimal(self.cash_in or 0) - Decimal(self.cash_out or 0)

    @property
    def amount(self) -> Decimal:
        return Decimal(self.cash_in or 0) or Decimal(self.cash_out or 0)

    @property
    def transaction_type(self) -> str:
        """Income for cash received, Expense otherwise."""
        return "Income" if (self.cash_in or 0) > 0 else "Expense"

    @property
    def has_proof(self) -> bool:
        return bool(self.attachment_urls)

    # Validation methods
    @validates("cash_in", "cash_out")
    def validate_amount(self, key, value):
        """Amounts are stored as non-negative decimals."""
        value = Decimal(str(value if value is not None else 0))
        if value < 0:
            raise ValueError(f"{key} must not be negative")
        return value

    @validates("bill_status")
    def validate_bill_status(self, key, value):
        if value is not None and value not in [b.value for b in BillStatus]:
            raise ValueError(f"Invalid bill status: {value}")
        return value

    # Business methods
    def can_transition_to(self, target: VerificationStatus) -> bool:
        current = VerificationStatus(self.verification_status)
        return target in VERIFICATION_TRANSITIONS[current]

    def mark_approved(
        self,
        balance: Decimal,
        verifier_id: str,
        note: Optional[str] = None,
        verified_at: Optional[datetime] = None
    ) -> None:
        """Store the computed balance and the verifier."""
        self.balance = balance
        self.verification_status = VerificationStatus.APPROVED.value
        self.verified_by = verifier_id
        self.verified_at = verified_at or datetime.utcnow()
        self.verification_notes = note

    def mark_rejected(
        self,
        verifier_id: str,
        note: Optional[str] = None,
        verified_at: Optional[datetime] = None
    ) -> None:
        """Reject without touching the stored balance."""
        self.verification_status = VerificationStatus.REJECTED.value
        self.verified_by = verifier_id
        self.verified_at = verified_at or datetime.utcnow()
        self.verification_notes = note

    def __repr__(self) -> str:
        return (
            f"<CashTransaction(id={self.id}, branch='{self.branch}', "
            f"in={self.cash_in}, out={self.cash_out}, status='{self.verification_status}')>"
        )


class BranchOpeningBalance(BaseModel):
    """
    Opening balance of a branch cashbook.
    Also carries the per-branch auto-approve flag and the adjustment history.
    """

    __tablename__ = "branch_opening_balances"

    branch = Column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
        comment="Branch name (matched case-insensitively)"
    )

    opening_balance = Column(
        Numeric(precision=15, scale=2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Base amount the approved movements accumulate on"
    )

    auto_approve = Column(
        Boolean,
        nullable=True,
        comment="Skip the pending state for new entries; NULL means the portal default"
    )

    period_start = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        comment="Start of the balance period"
    )

    period_end = Column(
        DateTime,
        nullable=True,
        comment="End of the balance period"
    )

    balance_history = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Manual adjustments: [{date, amount, note, added_by}]"
    )

    @validates("opening_balance")
    def validate_opening_balance(self, key, value):
        return Decimal(str(value if value is not None else 0))

    def append_adjustment(
        self,
        amount: Decimal,
        entry_date: str,
        note: Optional[str] = None,
        added_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Record an adjustment and add it to the opening balance.

        Args:
            amount: Signed adjustment
            entry_date: Date of the adjustment (ISO string)
            note: Optional explanation
            added_by: Who recorded it

        Returns:
            dict: The history entry that was appended
        """
        entry: Dict[str, Any] = {"date": entry_date, "amount": float(amount)}
        if note:
            entry["note"] = note
        if added_by:
            entry["added_by"] = added_by

        # Reassign so the JSON column is flagged dirty
        history: List[Dict[str, Any]] = list(self.balance_history or [])
        history.append(entry)
        self.balance_history = history
        self.opening_balance = Decimal(self.opening_balance or 0) + Decimal(amount)
        return entry

    def __repr__(self) -> str:
        return f"<BranchOpeningBalance(branch='{self.branch}', opening_balance={self.opening_balance})>"
