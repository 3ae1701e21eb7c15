"""
Cashbook recording, approval workflow, summaries and ledgers.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from portal.core.constants import EmailCategory, EmailStatus, NotificationType, UserType, VerificationStatus
from portal.db.models import CashTransaction, Notification, EmailOutboxMessage


def entry(branch="Main Branch", **overrides):
    payload = {
        "branch": branch,
        "transaction_date": date.today().isoformat(),
        "primary_list": "Sales",
        "nature_of_expense": "Counter sales",
        "cash_in": 0,
        "cash_out": 0,
    }
    payload.update(overrides)
    return payload


class TestAutoApprovedEntries:
    """Branches with auto-approve post entries immediately."""

    def test_cash_in_posts_on_top_of_opening_balance(self, client, staff_headers, staff, admin, auto_branch):
        response = client.post("/api/cashbook/transactions", json=entry(cash_in=500), headers=staff_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["verification_status"] == "approved"
        assert data["balance"] == 1500.0
        assert data["verified_by"] == staff.id
        assert data["verified_at"] is not None

    def test_consecutive_entries_chain_balances(self, client, staff_headers, auto_branch):
        client.post("/api/cashbook/transactions", json=entry(cash_in=500), headers=staff_headers)
        response = client.post("/api/cashbook/transactions", json=entry(cash_out=200), headers=staff_headers)

        assert response.json()["data"]["balance"] == 1300.0

    def test_branch_defaults_to_callers_branch(self, client, staff_headers, auto_branch):
        payload = entry(cash_in=100)
        del payload["branch"]

        response = client.post("/api/cashbook/transactions", json=payload, headers=staff_headers)

        assert response.status_code == 201
        assert response.json()["data"]["branch"] == "Main Branch"

    def test_admins_are_notified(self, client, db_session, staff_headers, admin, second_admin, auto_branch):
        client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers)

        notifications = db_session.query(Notification).all()
        assert sorted(n.user_id for n in notifications) == sorted([admin.id, second_admin.id])
        assert all(n.type == NotificationType.CASHBOOK_ENTRY.value for n in notifications)
        assert notifications[0].meta["requires_approval"] is False

    def test_low_balance_alert_on_crossing(self, client, db_session, transport, staff_headers,
                                           admin, second_admin, auto_branch):
        response = client.post("/api/cashbook/transactions", json=entry(cash_out=2000), headers=staff_headers)

        assert response.json()["data"]["balance"] == -1000.0
        alert = db_session.query(EmailOutboxMessage).filter_by(category=EmailCategory.LOW_BALANCE.value).one()
        assert alert.status == EmailStatus.SENT.value
        assert sorted(alert.recipients) == ["admin@example.com", "ops@example.com"]
        assert any(s.startswith("Low balance alert • Main Branch") for s in transport.subjects())

    def test_no_alert_when_already_below_threshold(self, client, db_session, staff_headers, admin, auto_branch):
        client.post("/api/cashbook/transactions", json=entry(cash_out=800), headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry(cash_out=100), headers=staff_headers)

        alerts = db_session.query(EmailOutboxMessage).filter_by(category=EmailCategory.LOW_BALANCE.value).all()
        assert len(alerts) == 1

    def test_branch_without_opening_balance_starts_at_zero(self, client, staff_headers):
        response = client.post(
            "/api/cashbook/transactions", json=entry(branch="New Branch", cash_in=300), headers=staff_headers
        )

        assert response.status_code == 201
        assert response.json()["data"]["balance"] == 300.0


class TestValidation:
    """Malformed entries are refused with 400."""

    def test_both_amounts_positive(self, client, staff_headers, auto_branch):
        response = client.post(
            "/api/cashbook/transactions", json=entry(cash_in=100, cash_out=100), headers=staff_headers
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("Validation failed")
        assert body["error_code"] == "VAL_001"

    def test_zero_amounts(self, client, staff_headers, auto_branch):
        response = client.post("/api/cashbook/transactions", json=entry(), headers=staff_headers)

        assert response.status_code == 400

    def test_negative_amount(self, client, staff_headers, auto_branch):
        response = client.post("/api/cashbook/transactions", json=entry(cash_in=-5), headers=staff_headers)

        assert response.status_code == 400

    def test_missing_branch_without_home_branch(self, client, admin_headers):
        payload = entry(cash_in=100)
        del payload["branch"]

        response = client.post("/api/cashbook/transactions", json=payload, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error_code"] == "VAL_002"

    def test_requires_authentication(self, client, auto_branch):
        response = client.post("/api/cashbook/transactions", json=entry(cash_in=100))

        assert response.status_code == 401
        assert response.json()["error"] == "Not authenticated"


class TestApprovalWorkflow:
    """Pending entries in manual branches."""

    def _submit(self, client, headers, **amounts):
        response = client.post("/api/cashbook/transactions", json=entry("North Branch", **amounts), headers=headers)
        assert response.status_code == 201
        return response.json()["data"]

    def test_pending_entry_keeps_placeholder_balance(self, client, staff_headers, manual_branch):
        data = self._submit(client, staff_headers, cash_out=300)

        assert data["verification_status"] == "pending"
        assert data["balance"] == 1000.0
        assert data["verified_by"] is None

    def test_pending_entry_fans_out(self, client, db_session, transport, staff_headers,
                                    accountant, admin, second_admin, manual_branch):
        self._submit(client, staff_headers, cash_out=300)

        recipients = sorted(n.user_id for n in db_session.query(Notification).all())
        assert recipients == sorted([accountant.id, admin.id, second_admin.id])
        assert len(transport.sent) == 1
        assert transport.sent[0]["subject"] == "Verification required: North Branch • Sales"
        assert sorted(transport.sent[0]["recipients"]) == sorted(
            ["accounts@example.com", "admin@example.com", "ops@example.com"]
        )

    def test_inactive_accountant_is_skipped(self, client, db_session, staff_headers, accountant, admin, manual_branch):
        accountant.is_active = False
        db_session.commit()

        self._submit(client, staff_headers, cash_out=300)

        assert [n.user_id for n in db_session.query(Notification).all()] == [admin.id]

    def test_proof_marker_in_subject(self, client, transport, staff_headers, admin, manual_branch):
        self._submit(client, staff_headers, cash_out=300, attachment_urls=["https://files.example.com/bill.jpg"])

        assert transport.sent[0]["subject"].endswith("• proof attached")

    def test_approve_posts_balance(self, client, db_session, transport, staff, staff_headers,
                                   accountant, admin, second_admin, manual_branch):
        pending = self._submit(client, staff_headers, cash_out=300)
        transport.sent.clear()

        response = client.post(
            "/api/cashbook/transactions/approve",
            json={"id": pending["id"], "verifier_id": accountant.id, "note": "Bill checked"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verification_status"] == "approved"
        assert data["balance"] == 700.0
        assert data["verified_by"] == accountant.id
        assert data["verification_notes"] == "Bill checked"

        staff_notes = db_session.query(Notification).filter_by(user_id=staff.id).all()
        assert [n.type for n in staff_notes] == [NotificationType.CASHBOOK_TRANSACTION_APPROVED.value]

        assert transport.subjects() == ["Transaction approved • North Branch"] * 3
        assert sorted(m["recipients"][0] for m in transport.sent) == sorted(
            ["staff@example.com", "admin@example.com", "ops@example.com"]
        )

    def test_approve_uses_latest_approved_balance(self, client, staff_headers, accountant, manual_branch):
        first = self._submit(client, staff_headers, cash_in=500)
        second = self._submit(client, staff_headers, cash_out=200)

        client.post("/api/cashbook/transactions/approve", json={"id": second["id"], "verifier_id": accountant.id})
        response = client.post(
            "/api/cashbook/transactions/approve", json={"id": first["id"], "verifier_id": accountant.id}
        )

        # Approval order, not submission order, chains the balances
        assert response.json()["data"]["balance"] == 1300.0

    def test_approve_twice_is_rejected(self, client, staff_headers, accountant, manual_branch):
        pending = self._submit(client, staff_headers, cash_out=300)
        body = {"id": pending["id"], "verifier_id": accountant.id}
        client.post("/api/cashbook/transactions/approve", json=body)

        response = client.post("/api/cashbook/transactions/approve", json=body)

        assert response.status_code == 400
        assert response.json()["error_code"] == "BIZ_001"

    def test_approve_unknown_transaction(self, client, accountant):
        response = client.post(
            "/api/cashbook/transactions/approve", json={"id": "missing", "verifier_id": accountant.id}
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "RES_001"

    def test_reject_leaves_balance(self, client, db_session, transport, staff, staff_headers,
                                   accountant, admin, manual_branch):
        pending = self._submit(client, staff_headers, cash_out=300)
        transport.sent.clear()

        response = client.post(
            "/api/cashbook/transactions/reject",
            json={"id": pending["id"], "verifier_id": accountant.id, "note": "No bill"},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["verification_status"] == "rejected"
        assert data["balance"] == 1000.0
        assert transport.sent[0]["recipients"] == ["staff@example.com"]
        assert transport.sent[0]["subject"].startswith("Transaction rejected")

        types = {n.user_id: n.type for n in db_session.query(Notification).filter(
            Notification.type == NotificationType.CASHBOOK_TRANSACTION_REJECTED.value
        )}
        assert set(types) == {staff.id, admin.id}

    def test_rejected_cannot_be_approved(self, client, staff_headers, accountant, manual_branch):
        pending = self._submit(client, staff_headers, cash_out=300)
        body = {"id": pending["id"], "verifier_id": accountant.id}
        client.post("/api/cashbook/transactions/reject", json=body)

        response = client.post("/api/cashbook/transactions/approve", json=body)

        assert response.status_code == 400

    def test_latest_approved_balance_equals_opening_plus_approved(self, client, db_session,
                                                                  staff_headers, accountant, manual_branch):
        amounts = [
            {"cash_in": 500}, {"cash_out": 120}, {"cash_out": 80},
            {"cash_in": 40}, {"cash_out": 1500}, {"cash_in": 10},
        ]
        submitted = [self._submit(client, staff_headers, **a) for a in amounts]
        approved_total = Decimal("0")
        for index, row in enumerate(submitted):
            action = "approve" if index % 3 != 1 else "reject"
            client.post(f"/api/cashbook/transactions/{action}", json={"id": row["id"], "verifier_id": accountant.id})
            if action == "approve":
                approved_total += Decimal(str(row["cash_in"])) - Decimal(str(row["cash_out"]))

        db_session.expire_all()
        latest = (
            db_session.query(CashTransaction)
            .filter_by(verification_status=VerificationStatus.APPROVED.value)
            .order_by(CashTransaction.verified_at.desc())
            .first()
        )
        assert latest.balance == Decimal("1000.00") + approved_total


class TestEditAndDelete:
    """Edits and deletes never rewrite stored balances."""

    def test_owner_can_edit(self, client, staff_headers, auto_branch):
        created = client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers).json()

        response = client.patch(
            f"/api/cashbook/transactions/{created['data']['id']}",
            json={"notes": "Cash counted twice"},
            headers=staff_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "Cash counted twice"

    def test_other_staff_cannot_edit(self, client, staff_headers, auth_headers, other_staff, auto_branch):
        created = client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers).json()

        response = client.patch(
            f"/api/cashbook/transactions/{created['data']['id']}",
            json={"notes": "Not mine"},
            headers=auth_headers(other_staff, UserType.STAFF),
        )

        assert response.status_code == 403

    def test_accountant_cannot_edit_or_delete_others_entries(self, client, staff_headers, accountant_headers,
                                                            auto_branch):
        created = client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers).json()
        transaction_id = created["data"]["id"]

        edited = client.patch(
            f"/api/cashbook/transactions/{transaction_id}",
            json={"cash_in": 1}, headers=accountant_headers,
        )
        deleted = client.delete(f"/api/cashbook/transactions/{transaction_id}", headers=accountant_headers)

        assert edited.status_code == 403
        assert deleted.status_code == 403
        listing = client.get(
            "/api/cashbook/transactions", params={"branch": "Main Branch"}, headers=staff_headers
        ).json()["data"]
        assert listing[0]["cash_in"] == 100.0

    def test_admin_can_edit_others_entries(self, client, staff_headers, admin_headers, auto_branch):
        created = client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers).json()

        response = client.patch(
            f"/api/cashbook/transactions/{created['data']['id']}",
            json={"notes": "Checked by admin"}, headers=admin_headers,
        )

        assert response.status_code == 200

        assert response.status_code == 403

    def test_edit_cannot_make_both_amounts_positive(self, client, staff_headers, auto_branch):
        created = client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers).json()

        response = client.patch(
            f"/api/cashbook/transactions/{created['data']['id']}",
            json={"cash_out": 50},
            headers=staff_headers,
        )

        assert response.status_code == 400

    def test_delete_leaves_later_balances(self, client, staff_headers, admin_headers, auto_branch):
        first = client.post("/api/cashbook/transactions", json=entry(cash_in=500), headers=staff_headers).json()
        second = client.post("/api/cashbook/transactions", json=entry(cash_out=200), headers=staff_headers).json()

        response = client.delete(f"/api/cashbook/transactions/{first['data']['id']}", headers=admin_headers)
        assert response.status_code == 200

        listing = client.get(
            "/api/cashbook/transactions", params={"branch": "Main Branch"}, headers=staff_headers
        ).json()["data"]
        assert [t["id"] for t in listing] == [second["data"]["id"]]
        assert listing[0]["balance"] == 1300.0

        ledger = client.get("/api/cashbook/ledger", params={"branch": "Main Branch"}, headers=staff_headers)
        line = ledger.json()["data"]["entries"][0]
        assert line["balance"] == 1300.0
        assert line["calculated_balance"] == 800.0


class TestQueries:
    """Listing, summary and ledger."""

    def test_listing_hides_pending_by_default(self, client, staff_headers, auto_branch, manual_branch):
        client.post("/api/cashbook/transactions", json=entry(cash_in=100), headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry("North Branch", cash_in=100), headers=staff_headers)

        approved_only = client.get("/api/cashbook/transactions", headers=staff_headers).json()["data"]
        everything = client.get(
            "/api/cashbook/transactions", params={"include_pending": True}, headers=staff_headers
        ).json()["data"]

        assert [t["verification_status"] for t in approved_only] == ["approved"]
        assert len(everything) == 2

    def test_listing_filters_by_date(self, client, staff_headers, auto_branch):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        client.post("/api/cashbook/transactions", json=entry(cash_in=100, transaction_date=yesterday),
                    headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry(cash_in=200), headers=staff_headers)

        response = client.get(
            "/api/cashbook/transactions",
            params={"start_date": date.today().isoformat()},
            headers=staff_headers,
        )

        assert [t["cash_in"] for t in response.json()["data"]] == [200.0]

    def test_summary(self, client, staff_headers, accountant, auto_branch):
        client.post("/api/cashbook/transactions", json=entry(cash_in=500), headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry(cash_out=200), headers=staff_headers)

        response = client.get("/api/cashbook/summary", params={"branch": "Main Branch"}, headers=staff_headers)

        summary = response.json()["data"]
        assert summary["opening_balance"] == 1000.0
        assert summary["total_cash_in"] == 500.0
        assert summary["total_cash_out"] == 200.0
        assert summary["closing_balance"] == 1300.0
        assert summary["transaction_count"] == 2

    def test_ledger_follows_posting_order(self, client, staff_headers, auto_branch):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        client.post("/api/cashbook/transactions", json=entry(cash_in=300), headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry(cash_out=100, transaction_date=yesterday),
                    headers=staff_headers)

        ledger = client.get(
            "/api/cashbook/ledger", params={"branch": "Main Branch"}, headers=staff_headers
        ).json()["data"]

        assert [e["calculated_balance"] for e in ledger["entries"]] == [1300.0, 1200.0]
        assert ledger["closing_balance"] == 1200.0

    def test_ledger_date_range_limits_lines_only(self, client, staff_headers, auto_branch):
        yesterday = (date.today() - timedelta(days=1)).isoformat()
        client.post("/api/cashbook/transactions", json=entry(cash_in=300, transaction_date=yesterday),
                    headers=staff_headers)
        client.post("/api/cashbook/transactions", json=entry(cash_out=100), headers=staff_headers)

        ledger = client.get(
            "/api/cashbook/ledger",
            params={"branch": "Main Branch", "start_date": date.today().isoformat()},
            headers=staff_headers,
        ).json()["data"]

        assert [e["calculated_balance"] for e in ledger["entries"]] == [1200.0]

    @pytest.mark.parametrize("path", ["/api/cashbook/summary", "/api/cashbook/ledger"])
    def test_branch_is_required(self, client, staff_headers, path):
        response = client.get(path, headers=staff_headers)

        assert response.status_code == 400
