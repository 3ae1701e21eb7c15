"""
Notification fan-out and the per-user inbox.
"""

import pytest

from portal.core.constants import NotificationType
from portal.services.notification_service import NotificationService


@pytest.fixture
def inbox(db_session, accountant):
    """Two cashbook notifications and one task notification for the accountant."""
    service = NotificationService(db_session)
    service.notify([accountant.id], NotificationType.CASHBOOK_ENTRY.value, "Pending", "Entry waiting",
                   reference_id="txn-1", reference_table="cash_transactions", metadata={"branch": "Main Branch"})
    service.notify([accountant.id], NotificationType.CASHBOOK_TRANSACTION_APPROVED.value, "Approved", "Entry approved")
    service.notify([accountant.id], NotificationType.TASK_ASSIGNMENT.value, "Task", "New task")
    db_session.commit()
    return accountant


class TestFanOut:
    def test_duplicate_and_blank_recipients_are_skipped(self, db_session, staff, admin):
        rows = NotificationService(db_session).notify(
            [staff.id, None, admin.id, staff.id, ""],
            NotificationType.CASHBOOK_ENTRY.value,
            "Title",
            "Message",
        )

        assert [r.user_id for r in rows] == [staff.id, admin.id]
        assert all(r.is_viewed is False for r in rows)

    def test_no_recipients(self, db_session):
        assert NotificationService(db_session).notify([], NotificationType.CASHBOOK_ENTRY.value, "T", "M") == []


class TestInbox:
    """Inbox endpoints for the authenticated user."""

    def test_list_and_count(self, client, inbox, accountant_headers):
        listing = client.get("/api/notifications", headers=accountant_headers).json()["data"]
        count = client.get("/api/notifications/count", headers=accountant_headers).json()

        assert len(listing) == 3
        assert count["success"] is True
        assert count["count"] == 3
        pending = [n for n in listing if n["reference_id"] == "txn-1"][0]
        assert pending["metadata"] == {"branch": "Main Branch"}

    def test_categories(self, client, inbox, accountant_headers):
        response = client.get("/api/notifications/categories", headers=accountant_headers).json()

        counts = {c["key"]: c["count"] for c in response["categories"]}
        assert counts["cashbook"] == 2
        assert counts["tasks"] == 1
        assert counts["scrap"] == 0
        assert response["total"] == 3

    def test_mark_category_viewed(self, client, inbox, accountant_headers):
        response = client.post(
            "/api/notifications/mark-category-viewed", json={"category": "cashbook"}, headers=accountant_headers
        )

        assert response.json() == {"success": True, "updated": 2}
        assert client.get("/api/notifications/count", headers=accountant_headers).json()["count"] == 1
        unviewed = client.get(
            "/api/notifications", params={"unviewed_only": True}, headers=accountant_headers
        ).json()["data"]
        assert [n["type"] for n in unviewed] == [NotificationType.TASK_ASSIGNMENT.value]

    def test_unknown_category(self, client, inbox, accountant_headers):
        response = client.post(
            "/api/notifications/mark-category-viewed", json={"category": "payroll"}, headers=accountant_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Unknown notification category: payroll"

    def test_mark_all_viewed(self, client, inbox, accountant_headers):
        response = client.post("/api/notifications/mark-all-viewed", headers=accountant_headers)

        assert response.json()["updated"] == 3
        assert client.get("/api/notifications/count", headers=accountant_headers).json()["count"] == 0

    def test_mark_one_viewed(self, client, inbox, accountant_headers):
        first = client.get("/api/notifications", headers=accountant_headers).json()["data"][0]

        response = client.post(f"/api/notifications/{first['id']}/viewed", headers=accountant_headers)

        data = response.json()["data"]
        assert data["is_viewed"] is True
        assert data["viewed_at"] is not None

    def test_cannot_mark_another_users_notification(self, client, inbox, staff_headers, accountant_headers):
        first = client.get("/api/notifications", headers=accountant_headers).json()["data"][0]

        response = client.post(f"/api/notifications/{first['id']}/viewed", headers=staff_headers)

        assert response.status_code == 404

    def test_inbox_is_per_user(self, client, inbox, staff_headers):
        assert client.get("/api/notifications/count", headers=staff_headers).json()["count"] == 0
