"""
Bootstrap seeding.
"""

from portal.core.security import verify_password
from portal.db.init_db import create_first_admin, create_branch_opening_balances, verify_initialization
from portal.db.models import Admin, BranchOpeningBalance


class TestSeeding:
    def test_first_admin_is_created_once(self, db_session):
        create_first_admin(db_session)
        create_first_admin(db_session)

        admins = db_session.query(Admin).all()
        assert [a.email for a in admins] == ["admin@example.com"]
        assert verify_password("ChangeMe123!", admins[0].hashed_password)

    def test_branches_seeded_with_zero_balance(self, db_session):
        create_branch_opening_balances(db_session)
        create_branch_opening_balances(db_session)

        rows = db_session.query(BranchOpeningBalance).all()
        assert [(r.branch, float(r.opening_balance)) for r in rows] == [("Main Branch", 0.0)]
        assert rows[0].auto_approve is None

    def test_counts(self, db_session, staff, admin):
        counts = verify_initialization(db_session)["counts"]

        assert counts["admins"] == 1
        assert counts["staff"] == 1
        assert counts["cash_transactions"] == 0
