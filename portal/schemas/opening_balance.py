"""
Module: opening_balance
Purpose: Schemas for branch opening balances and their adjustment history
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class OpeningBalanceSet(BaseModel):
    """Set (overwrite) the opening balance of a branch."""

    opening_balance: Decimal = Field(..., max_digits=15, decimal_places=2, description="New opening balance")
    auto_approve: Optional[bool] = Field(default=None, description="Auto-approve new entries for this branch")
    period_start: Optional[datetime] = Field(default=None, description="Start of the balance period")
    period_end: Optional[datetime] = Field(default=None, description="End of the balance period")


class OpeningBalanceAppend(BaseModel):
    """
    Adjustment appended to a branch's history.
    Fields are checked by the service so the error names what is missing.
    """

    branch: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, max_digits=15, decimal_places=2)
    date: Optional[str] = None
    note: Optional[str] = None
    added_by: Optional[str] = None


class OpeningBalanceResponse(BaseModel):
    """Stored opening balance of a branch."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    branch: str
    opening_balance: float
    auto_approve: bool
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    balance_history: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
