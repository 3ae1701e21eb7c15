"""
Module: user_repository
Purpose: Staff and admin data access
Author: Portal Development Team
Date: 2024
"""

from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import func, asc

from portal.repositories.base import BaseRepository
from portal.db.models import Staff, Admin
from portal.core.constants import StaffRole
from portal.core.exceptions import handle_database_exception


class StaffRepository(BaseRepository[Staff]):
    """Repository for staff members."""

    resource_name = "Staff"

    def __init__(self, db: Session):
        super().__init__(Staff, db)

    def get_by_email(self, email: str) -> Optional[Staff]:
        """
        Get staff member by email (case-insensitive).

        Args:
            email: Email address

        Returns:
            Staff or None
        """
        try:
            return self.db.query(Staff).filter(
                func.lower(Staff.email) == email.strip().lower()
            ).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Database error getting staff by email: {str(e)}")
            raise handle_database_exception(e, "get staff by email")

    def get_active_accountants(self) -> List[Staff]:
        """Active staff whose role is accountant."""
        try:
            return (
                self.db.query(Staff)
                .filter(
                    func.lower(Staff.role) == StaffRole.ACCOUNTANT.value,
                    Staff.is_active.is_(True)
                )
                .order_by(asc(Staff.name))
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Database error listing accountants: {str(e)}")
            raise handle_database_exception(e, "list accountants")

    def get_names_by_ids(self, staff_ids: List[str]) -> dict:
        """Map of staff id to name for the given ids."""
        if not staff_ids:
            return {}
        try:
            rows = self.db.query(Staff.id, Staff.name).filter(Staff.id.in_(staff_ids)).all()
            return {row.id: row.name for row in rows}
        except SQLAlchemyError as e:
            self.logger.error(f"Database error reading staff names: {str(e)}")
            raise handle_database_exception(e, "read staff names")


class AdminRepository(BaseRepository[Admin]):
    """Repository for administrators."""

    resource_name = "Admin"

    def __init__(self, db: Session):
        super().__init__(Admin, db)

    def get_by_email(self, email: str) -> Optional[Admin]:
        try:
            return self.db.query(Admin).filter(
                func.lower(Admin.email) == email.strip().lower()
            ).first()
        except SQLAlchemyError as e:
            self.logger.error(f"Database error getting admin by email: {str(e)}")
            raise handle_database_exception(e, "get admin by email")

    def list_all(self) -> List[Admin]:
        """Every admin, oldest account first."""
        return self.get_all(limit=None, order_by="created_at")

    def get_first(self) -> Optional[Admin]:
        admins = self.get_all(limit=1, order_by="created_at")
        return admins[0] if admins else None

    def list_emails(self) -> List[str]:
        return [admin.email for admin in self.list_all() if admin.email]
