"""
Shared fixtures: in-memory database, recording mail transport, seeded
accounts and branches, and bearer headers.
"""

import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["TESTING"] = "true"
os.environ["LOG_FILE"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-jwt"
os.environ["CRON_SECRET"] = "cron-test-secret"
os.environ["CASHBOOK_AUTO_APPROVE_DEFAULT"] = "true"
os.environ["LOW_BALANCE_THRESHOLD"] = "500"
os.environ["DAILY_REPORT_RECIPIENTS"] = "reports@example.com"

from decimal import Decimal
from typing import List

import pytest
from fastapi.testclient import TestClient

from portal.core.constants import StaffRole, UserType
from portal.core.exceptions import EmailDeliveryException
from portal.core.security import create_access_token, get_password_hash
from portal.db.database import db_manager, get_db
from portal.db.models import Admin, Staff, BranchOpeningBalance
from portal.main import app
from portal.services.mailer import EmailTransport, get_email_transport

TEST_PASSWORD = "Secret123!"


class RecordingTransport(EmailTransport):
    """Mail transport that keeps what it was asked to send."""

    def __init__(self):
        self.sent: List[dict] = []
        self.configured = True
        self.fail_all = False
        self.fail_for = set()

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, recipients: List[str], subject: str, html: str) -> None:
        if self.fail_all or any(r in self.fail_for for r in recipients):
            raise EmailDeliveryException(recipients, "SMTP unavailable")
        self.sent.append({"recipients": list(recipients), "subject": subject, "html": html})

    def subjects(self) -> List[str]:
        return [m["subject"] for m in self.sent]


@pytest.fixture
def db_session():
    db_manager.create_tables()
    session = db_manager.get_session()
    try:
        yield session
    finally:
        session.close()
        db_manager.drop_tables()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def client(db_session, transport):
    def override_get_db():
        session = db_manager.get_session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_transport] = lambda: transport
    yield TestClient(app)
    app.dependency_overrides.clear()


def _add(db_session, instance):
    db_session.add(instance)
    db_session.commit()
    db_session.refresh(instance)
    return instance


@pytest.fixture
def admin(db_session):
    return _add(db_session, Admin(
        name="Asha Admin",
        email="admin@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        expense_categories=[],
    ))


@pytest.fixture
def second_admin(db_session, admin):
    return _add(db_session, Admin(
        name="Omar Ops",
        email="ops@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        expense_categories=[],
    ))


@pytest.fixture
def staff(db_session):
    return _add(db_session, Staff(
        name="Sam Staff",
        employee_id="E001",
        email="staff@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=StaffRole.STAFF.value,
        branch="Main Branch",
    ))


@pytest.fixture
def other_staff(db_session):
    return _add(db_session, Staff(
        name="Olive Other",
        employee_id="E002",
        email="other@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=StaffRole.STAFF.value,
        branch="Main Branch",
    ))


@pytest.fixture
def accountant(db_session):
    return _add(db_session, Staff(
        name="Anil Accounts",
        employee_id="E100",
        email="accounts@example.com",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=StaffRole.ACCOUNTANT.value,
        branch="Main Branch",
    ))


@pytest.fixture
def auto_branch(db_session):
    """Branch that posts entries immediately."""
    return _add(db_session, BranchOpeningBalance(
        branch="Main Branch",
        opening_balance=Decimal("1000.00"),
        auto_approve=True,
        balance_history=[],
    ))


@pytest.fixture
def manual_branch(db_session):
    """Branch whose entries wait for an accountant."""
    return _add(db_session, BranchOpeningBalance(
        branch="North Branch",
        opening_balance=Decimal("1000.00"),
        auto_approve=False,
        balance_history=[],
    ))


def bearer(account, user_type: UserType) -> dict:
    token = create_access_token({"sub": account.id, "user_type": user_type.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Bearer header builder for any seeded account."""
    return bearer


@pytest.fixture
def staff_headers(staff):
    return bearer(staff, UserType.STAFF)


@pytest.fixture
def accountant_headers(accountant):
    return bearer(accountant, UserType.STAFF)


@pytest.fixture
def admin_headers(admin):
    return bearer(admin, UserType.ADMIN)
