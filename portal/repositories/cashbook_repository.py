"""
Module: cashbook_repository
Purpose: Data access for cash transactions and branch opening balances
Author: Portal Development Team
Date: 2024
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, asc, func, extract

from portal.db.models import CashTransaction, BranchOpeningBalance
from portal.core.constants import VerificationStatus
from portal.core.exceptions import handle_database_exception
from portal.repositories.base import BaseRepository


def _branch_matches(column, branch: str):
    """Case-insensitive branch comparison."""
    return func.lower(column) == branch.strip().lower()


class CashTransactionRepository(BaseRepository[CashTransaction]):
    """
    Repository for cash transactions.
    Ledger order is (verified_at, transaction_date, created_at).
    """

    resource_name = "Transaction"

    def __init__(self, db: Session):
        super().__init__(CashTransaction, db)

    def get_latest_approved(self, branch: str) -> Optional[CashTransaction]:
        """
        Most recent approved transaction of a branch.

        Args:
            branch: Branch name

        Returns:
            CashTransaction or None: Latest approved row
        """
        try:
            return (
                self.db.query(CashTransaction)
                .filter(
                    _branch_matches(CashTransaction.branch, branch),
                    CashTransaction.is_approved
                )
                .order_by(
                    desc(CashTransaction.verified_at),
                    desc(CashTransaction.transaction_date),
                    desc(CashTransaction.created_at)
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading latest balance for {branch}: {str(e)}")
            raise handle_database_exception(e, "read latest approved transaction")

    def list_transactions(
        self,
        branch: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        include_pending: bool = False,
        include_rejected: Optional[bool] = None,
        staff_id: Optional[str] = None
    ) -> List[CashTransaction]:
        """
        List transactions newest first.

        Approved rows are always included; pending and rejected rows only on
        request. include_rejected follows include_pending when not given.
        """
        if include_rejected is None:
            include_rejected = include_pending

        statuses = [VerificationStatus.APPROVED.value]
        if include_pending:
            statuses.append(VerificationStatus.PENDING.value)
        if include_rejected:
            statuses.append(VerificationStatus.REJECTED.value)

        try:
            query = self.db.query(CashTransaction).filter(
                CashTransaction.verification_status.in_(statuses)
            )
            if branch:
                query = query.filter(_branch_matches(CashTransaction.branch, branch))
            if start_date:
                query = query.filter(CashTransaction.transaction_date >= start_date)
            if end_date:
                query = query.filter(CashTransaction.transaction_date <= end_date)
            if staff_id:
                query = query.filter(CashTransaction.staff_id == staff_id)

            return query.order_by(
                desc(CashTransaction.transaction_date),
                desc(CashTransaction.created_at)
            ).all()

        except SQLAlchemyError as e:
            self.logger.error(f"Database error listing transactions: {str(e)}")
            raise handle_database_exception(e, "list transactions")

    def list_approved_in_ledger_order(
        self,
        branch: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[CashTransaction]:
        """Approved rows of a branch, oldest first."""
        try:
            query = self.db.query(CashTransaction).filter(
                _branch_matches(CashTransaction.branch, branch),
                CashTransaction.is_approved
            )
            if start_date:
                query = query.filter(CashTransaction.transaction_date >= start_date)
            if end_date:
                query = query.filter(CashTransaction.transaction_date <= end_date)

            return query.order_by(
                asc(CashTransaction.verified_at),
                asc(CashTransaction.transaction_date),
                asc(CashTransaction.created_at)
            ).all()

        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading ledger for {branch}: {str(e)}")
            raise handle_database_exception(e, "read ledger")

    def get_approved_totals(
        self,
        branch: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """
        Sum of cash in / cash out and row count over approved rows.

        Returns:
            dict: total_cash_in, total_cash_out, transaction_count
        """
        try:
            query = self.db.query(
                func.coalesce(func.sum(CashTransaction.cash_in), 0),
                func.coalesce(func.sum(CashTransaction.cash_out), 0),
                func.count(CashTransaction.id)
            ).filter(
                _branch_matches(CashTransaction.branch, branch),
                CashTransaction.is_approved
            )
            if start_date:
                query = query.filter(CashTransaction.transaction_date >= start_date)
            if end_date:
                query = query.filter(CashTransaction.transaction_date <= end_date)

            total_in, total_out, count = query.one()
            return {
                "total_cash_in": Decimal(str(total_in)),
                "total_cash_out": Decimal(str(total_out)),
                "transaction_count": count,
            }

        except SQLAlchemyError as e:
            self.logger.error(f"Database error summarising {branch}: {str(e)}")
            raise handle_database_exception(e, "summarise transactions")

    def get_voucher_numbers(self, branch: str, prefix: str, year: int) -> List[str]:
        """Voucher numbers of a branch starting with prefix, dated in the given year."""
        try:
            rows = (
                self.db.query(CashTransaction.voucher_no)
                .filter(
                    _branch_matches(CashTransaction.branch, branch),
                    CashTransaction.voucher_no.like(f"{prefix}%"),
                    extract("year", CashTransaction.transaction_date) == year
                )
                .all()
            )
            return [row[0] for row in rows if row[0]]

        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading voucher numbers: {str(e)}")
            raise handle_database_exception(e, "read voucher numbers")

    def voucher_exists(self, voucher_no: str) -> bool:
        return self.exists(voucher_no=voucher_no)


class OpeningBalanceRepository(BaseRepository[BranchOpeningBalance]):
    """Repository for branch opening balances."""

    resource_name = "Opening balance"

    def __init__(self, db: Session):
        super().__init__(BranchOpeningBalance, db)

    def get_by_branch(self, branch: str, for_update: bool = False) -> Optional[BranchOpeningBalance]:
        """
        Opening balance row of a branch.

        Args:
            branch: Branch name (case-insensitive)
            for_update: Lock the row until the surrounding transaction ends

        Returns:
            BranchOpeningBalance or None
        """
        try:
            query = self.db.query(BranchOpeningBalance).filter(
                _branch_matches(BranchOpeningBalance.branch, branch)
            )
            if for_update:
                query = query.with_for_update()
            return query.first()

        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading opening balance for {branch}: {str(e)}")
            raise handle_database_exception(e, "read opening balance")

    def list_all(self) -> List[BranchOpeningBalance]:
        return self.get_all(limit=None, order_by="branch")
