"""
Module: init_db
Purpose: Database initialization and development seed data
Author: Portal Development Team
Date: 2024
"""

import json
import sys
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from portal.core.config import settings
from portal.core.security import get_password_hash
from portal.db.database import db_manager
from portal.db.models import (
    Admin, Staff, BranchOpeningBalance, CashTransaction, Notification, EmailOutboxMessage
)
from portal.utils.logger import get_logger

logger = get_logger(__name__)


# ==================== CORE INITIALIZATION FUNCTIONS ====================

def create_first_admin(db: Session) -> None:
    """
    Create the initial admin account from settings.

    Args:
        db: Database session
    """
    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    existing = db.query(Admin).filter(func.lower(Admin.email) == email).first()
    if existing:
        logger.info(f"Admin already exists: {email}")
        return

    try:
        db.add(Admin(
            name=settings.FIRST_ADMIN_NAME,
            email=email,
            hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            expense_categories=[],
        ))
        db.commit()
        logger.info(f"Created admin: {email}")

    except IntegrityError as e:
        db.rollback()
        logger.error(f"Failed to create admin due to integrity error: {str(e)}")


def create_branch_opening_balances(db: Session) -> None:
    """Zero opening balance rows for the configured branches."""
    created = 0
    for branch in settings.SEED_BRANCHES:
        exists = db.query(BranchOpeningBalance).filter(
            func.lower(BranchOpeningBalance.branch) == branch.lower()
        ).first()
        if exists:
            continue

        db.add(BranchOpeningBalance(
            branch=branch,
            opening_balance=Decimal("0.00"),
            period_start=datetime.utcnow(),
            balance_history=[],
        ))
        created += 1

    db.commit()
    logger.info(f"Created {created} branch opening balance(s)")


def verify_initialization(db: Session) -> Dict[str, Any]:
    """
    Count the rows of the core tables.

    Returns:
        dict: Table counts
    """
    return {
        "counts": {
            "admins": db.query(func.count(Admin.id)).scalar(),
            "staff": db.query(func.count(Staff.id)).scalar(),
            "opening_balances": db.query(func.count(BranchOpeningBalance.id)).scalar(),
            "cash_transactions": db.query(func.count(CashTransaction.id)).scalar(),
            "notifications": db.query(func.count(Notification.id)).scalar(),
            "email_outbox": db.query(func.count(EmailOutboxMessage.id)).scalar(),
        }
    }


def init_db() -> None:
    """Create tables and seed the initial admin and branches."""
    logger.info("Starting database initialization...")
    db_manager.create_tables()

    with db_manager.get_session_context() as db:
        create_first_admin(db)
        create_branch_opening_balances(db)
        counts = verify_initialization(db)["counts"]

    logger.info("Database initialization completed", **counts)


# ==================== STANDALONE EXECUTION ====================

if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "verify":
        with db_manager.get_session_context() as session:
            print(json.dumps(verify_initialization(session), indent=2, default=str))
    elif len(sys.argv) > 1:
        print("Usage: python -m portal.db.init_db [verify]")
    else:
        init_db()
