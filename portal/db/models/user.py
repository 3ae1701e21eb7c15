"""
Module: user
Purpose: Staff and admin account models
Author: Portal Development Team
Date: 2024
"""

from sqlalchemy import (
    Column, String, Boolean, ForeignKey, Index, JSON
)
from sqlalchemy.orm import relationship, validates
from sqlalchemy.ext.hybrid import hybrid_property

from portal.db.base import BaseModel
from portal.core.constants import StaffRole


class Staff(BaseModel):
    """
    Staff member of a branch.
    Accountants receive the cashbook entries that wait for verification.
    """

    __tablename__ = "staff"

    name = Column(
        String(150),
        nullable=False,
        comment="Display name"
    )

    employee_id = Column(
        String(50),
        nullable=True,
        unique=True,
        index=True,
        comment="Employee number"
    )

    email = Column(
        String(255),
        nullable=True,
        unique=True,
        index=True,
        comment="Login and notification address"
    )

    hashed_password = Column(
        String(255),
        nullable=True,
        comment="Password hash"
    )

    role = Column(
        String(50),
        nullable=False,
        default=StaffRole.STAFF.value,
        index=True,
        comment="staff, team_leader, accountant or manager"
    )

    branch = Column(
        String(100),
        nullable=True,
        index=True,
        comment="Home branch"
    )

    team_id = Column(
        String(36),
        ForeignKey("teams.id", ondelete="SET NULL"),
        nullable=True,
        comment="Team the staff member belongs to"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        server_default='true',
        comment="Inactive staff cannot log in or receive fan-out"
    )

    team = relationship("Team", foreign_keys=[team_id], back_populates="members")

    __table_args__ = (
        Index("idx_staff_role_active", role, is_active),
    )

    @hybrid_property
    def is_accountant(self) -> bool:
        return self.role == StaffRole.ACCOUNTANT.value

    @validates("role")
    def validate_role(self, key, role):
        return (role or StaffRole.STAFF.value).strip().lower()

    @validates("email")
    def validate_email(self, key, email):
        return email.strip().lower() if email else email

    def __repr__(self) -> str:
        return f"<Staff(name='{self.name}', role='{self.role}', branch='{self.branch}')>"


class Admin(BaseModel):
    """
    Portal administrator. Every admin receives the cashbook broadcast.
    """

    __tablename__ = "admins"

    name = Column(
        String(150),
        nullable=False,
        comment="Display name"
    )

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        comment="Login and notification address"
    )

    hashed_password = Column(
        String(255),
        nullable=True,
        comment="Password hash"
    )

    expense_categories = Column(
        JSON,
        nullable=False,
        default=list,
        comment="Expense heads offered in the cashbook forms"
    )

    @validates("email")
    def validate_email(self, key, email):
        return email.strip().lower() if email else email

    def __repr__(self) -> str:
        return f"<Admin(name='{self.name}', email='{self.email}')>"
