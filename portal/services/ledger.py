"""
Module: ledger
Purpose: Running-balance arithmetic for branch cashbooks
Author: Portal Development Team
Date: 2024
"""

from decimal import Decimal
from typing import Iterable, Iterator, Optional, Tuple

from portal.db.models import CashTransaction, BranchOpeningBalance
from portal.utils.formatting import to_decimal, Number


def opening_balance_of(opening: Optional[BranchOpeningBalance]) -> Decimal:
    """Opening balance of a branch, zero when the branch has none recorded."""
    return to_decimal(opening.opening_balance) if opening else Decimal("0.00")


def resolve_previous_balance(
    latest_approved: Optional[CashTransaction],
    opening: Optional[BranchOpeningBalance]
) -> Decimal:
    """
    Balance a new movement is applied on top of.

    The stored balance of the latest approved transaction wins; a branch
    with no approved movement starts from its opening balance.
    """
    if latest_approved is not None and latest_approved.balance is not None:
        return to_decimal(latest_approved.balance)
    return opening_balance_of(opening)


def compute_new_balance(previous: Number, cash_in: Number, cash_out: Number) -> Decimal:
    """previous + cash_in - cash_out"""
    return to_decimal(previous) + to_decimal(cash_in) - to_decimal(cash_out)


def crosses_low_balance_threshold(previous: Number, new: Number, threshold: Number) -> bool:
    """
    True when the balance falls from at-or-above the threshold to below it.
    Staying below (or starting below) does not count as a crossing.
    """
    limit = to_decimal(threshold)
    return to_decimal(previous) >= limit and to_decimal(new) < limit


def fold_ledger(
    opening_balance: Number,
    approved_in_order: Iterable[CashTransaction]
) -> Iterator[Tuple[CashTransaction, Decimal]]:
    """
    Recompute running balances from the opening balance.

    Args:
        opening_balance: Starting balance of the branch
        approved_in_order: Approved transactions, oldest first

    Yields:
        (transaction, calculated_balance) pairs
    """
    running = to_decimal(opening_balance)
    for transaction in approved_in_order:
        running = compute_new_balance(running, transaction.cash_in, transaction.cash_out)
        yield transaction, running
