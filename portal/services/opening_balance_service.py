"""
Module: opening_balance_service
Purpose: Branch opening balances, the auto-approve flag and adjustment history
Author: Portal Development Team
Date: 2024
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.exceptions import (
    PortalException, SystemException, ResourceNotFoundException, require_fields
)
from portal.db.models import BranchOpeningBalance
from portal.repositories.cashbook_repository import OpeningBalanceRepository
from portal.schemas.auth import RequestContext
from portal.schemas.opening_balance import OpeningBalanceSet, OpeningBalanceAppend
from portal.utils.formatting import to_decimal
from portal.utils.logger import get_logger


class OpeningBalanceService:
    """Opening balance store."""

    def __init__(self, db: Session):
        self.db = db
        self.opening_repo = OpeningBalanceRepository(db)
        self.logger = get_logger(self.__class__.__name__)

    def serialize(self, opening: BranchOpeningBalance) -> Dict[str, Any]:
        """Row as a dict with the effective auto-approve flag."""
        data = opening.to_dict()
        if data.get("auto_approve") is None:
            data["auto_approve"] = settings.CASHBOOK_AUTO_APPROVE_DEFAULT
        data["balance_history"] = list(data.get("balance_history") or [])
        return data

    def list_balances(self) -> List[Dict[str, Any]]:
        return [self.serialize(row) for row in self.opening_repo.list_all()]

    def get_balance(self, branch: str) -> Dict[str, Any]:
        opening = self.opening_repo.get_by_branch(branch)
        if opening is None:
            raise ResourceNotFoundException("Opening balance", branch)
        return self.serialize(opening)

    def set_balance(self, context: RequestContext, branch: str, data: OpeningBalanceSet) -> Dict[str, Any]:
        """
        Overwrite (or create) the opening balance of a branch.

        Args:
            context: Acting admin
            branch: Branch name
            data: New balance and optional flags

        Returns:
            dict: Stored opening balance
        """
        try:
            opening = self.opening_repo.get_by_branch(branch, for_update=True)
            values: Dict[str, Any] = {"opening_balance": data.opening_balance}
            if data.auto_approve is not None:
                values["auto_approve"] = data.auto_approve
            if data.period_end is not None:
                values["period_end"] = data.period_end

            if opening is None:
                opening = self.opening_repo.create(
                    branch=branch.strip(),
                    period_start=data.period_start or datetime.utcnow(),
                    balance_history=[],
                    **values
                )
                action = "create_opening_balance"
            else:
                if data.period_start is not None:
                    values["period_start"] = data.period_start
                self.opening_repo.update(opening, **values)
                action = "set_opening_balance"

            self.db.commit()

            self.logger.log_user_activity(
                user_id=context.user_id,
                action=action,
                branch=opening.branch,
                opening_balance=opening.opening_balance,
                auto_approve=opening.auto_approve
            )
            return self.serialize(opening)

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error setting opening balance for {branch}: {str(e)}")
            raise SystemException(str(e))

    def append_entry(self, context: Optional[RequestContext], data: OpeningBalanceAppend) -> Dict[str, Any]:
        """
        Append an adjustment to a branch's history and apply it to the opening balance.

        Raises:
            RequiredFieldMissingException: If branch, amount or date is missing
            ResourceNotFoundException: If the branch has no opening balance
        """
        require_fields(data.model_dump(), ["branch", "amount", "date"])

        try:
            opening = self.opening_repo.get_by_branch(data.branch, for_update=True)
            if opening is None:
                raise ResourceNotFoundException("Opening balance", data.branch)

            added_by = data.added_by or (context.name if context else None)
            entry = opening.append_adjustment(to_decimal(data.amount), data.date, data.note, added_by)
            self.db.commit()

            self.logger.log_user_activity(
                user_id=context.user_id if context else "system",
                action="append_opening_balance",
                branch=opening.branch,
                amount=entry["amount"],
                opening_balance=opening.opening_balance
            )
            return self.serialize(opening)

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error appending opening balance entry for {data.branch}: {str(e)}")
            raise SystemException(str(e))

    def delete_balance(self, context: RequestContext, branch: str) -> None:
        try:
            opening = self.opening_repo.get_by_branch(branch)
            if opening is None:
                raise ResourceNotFoundException("Opening balance", branch)

            self.opening_repo.delete(opening)
            self.db.commit()
            self.logger.log_user_activity(
                user_id=context.user_id,
                action="delete_opening_balance",
                branch=branch
            )

        except PortalException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"Error deleting opening balance for {branch}: {str(e)}")
            raise SystemException(str(e))
