"""
Purchase, scrap, grocery and asset request emails, stationary low-stock
alerts and support reports.
"""

import pytest

from portal.core.config import settings
from portal.core.constants import EmailCategory
from portal.db.models import EmailOutboxMessage

PURCHASE = {
    "purchase_item": "Label printer",
    "branch": "Main Branch",
    "department": "Stores",
    "created_at": "2024-05-02T10:00:00",
    "staff": {"name": "Sam Staff", "email": "staff@example.com"},
    "product_name": "Zebra ZD220",
    "serial_no": "SN-1",
}

SCRAP = {
    "submitter_name": "Sam Staff",
    "brand_name": "Dell",
    "serial_number": "SN-9",
    "workstation_number": "WS-4",
    "scrap_status": "beyond_repair",
    "branch": "Main Branch",
}

GROCERY = {
    "staff_name": "Sam Staff",
    "branch": "Main Branch",
    "total_request_amount": 450,
    "items": [
        {"item_name": "A4 paper", "quantity": 2, "unit": "Rim", "total_amount": 400},
        {"item_name": "Stapler pins", "quantity": 1, "unit": "Box", "total_amount": 50},
    ],
}


def notify(client, flow, **payload):
    return client.post(f"/api/email/send-{flow}-notification", json=payload)


class TestRequestDispatchValidation:
    def test_type_and_request_data_required(self, client):
        response = notify(client, "purchase")

        assert response.status_code == 400
        assert response.json()["details"]["missing_fields"] == ["type", "requestData"]

    def test_empty_request_data_is_accepted(self, client, transport):
        response = notify(client, "asset", type="new_request", requestData={}, adminEmail="admin@example.com")

        assert response.status_code == 200
        assert transport.sent[0]["subject"] == "New Asset Request: Unknown Asset"

    def test_kind_must_belong_to_the_flow(self, client):
        response = notify(client, "scrap", type="product_uploaded", requestData=SCRAP, adminEmail="admin@example.com")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid notification type: product_uploaded"
        assert body["details"]["allowed"] == ["new_request", "approved", "rejected"]

    @pytest.mark.parametrize("flow, kind, missing", [
        ("purchase", "new_request", ["adminEmail"]),
        ("purchase", "approved", ["staffEmail"]),
        ("purchase", "asset_created", ["staffEmail", "assetRequest"]),
        ("purchase", "duplicate_serial", ["staffEmail", "duplicateSerialNo"]),
        ("scrap", "approved", ["submitterEmail"]),
        ("scrap", "rejected", ["submitterEmail", "rejectionReason"]),
        ("grocery", "rejected", ["staffEmail", "rejectionReason"]),
        ("asset", "approved", ["staffEmail"]),
    ])
    def test_fields_of_each_kind(self, client, flow, kind, missing):
        response = notify(client, flow, type=kind, requestData={"branch": "Main Branch"})

        assert response.status_code == 400
        assert response.json()["details"]["missing_fields"] == missing


class TestPurchaseNotifications:
    def test_new_request_to_admin(self, client, transport):
        response = notify(client, "purchase", type="new_request", requestData=PURCHASE, adminEmail="admin@example.com")

        assert response.json() == {
            "success": True,
            "message": "Notification sent",
            "recipients": ["admin@example.com"],
        }
        assert transport.sent[0]["subject"] == "New Purchase Request: Label printer"
        assert "Sam Staff" in transport.sent[0]["html"]
        assert "02/05/2024" in transport.sent[0]["html"]

    def test_missing_values_fall_back(self, client, transport):
        notify(client, "purchase", type="new_request", requestData={"id": "p-1"}, adminEmail="admin@example.com")

        assert transport.sent[0]["subject"] == "New Purchase Request: Unknown Item"
        assert "Staff Member" in transport.sent[0]["html"]
        assert "Unknown Branch" in transport.sent[0]["html"]

    def test_request_values_are_escaped(self, client, transport):
        notify(
            client, "purchase", type="new_request", adminEmail="admin@example.com",
            requestData={"purchase_item": "<b>Printer</b>", "name": "Sam & Co"},
        )

        html = transport.sent[0]["html"]
        assert "<b>Printer</b>" not in html
        assert "&lt;b&gt;Printer&lt;/b&gt;" in html
        assert "Sam &amp; Co" in html

    def test_submission_reads_admin_from_request_data(self, client, transport):
        response = notify(
            client, "purchase", type="submission",
            requestData={**PURCHASE, "adminEmail": "admin@example.com"},
        )

        assert response.json()["recipients"] == ["admin@example.com"]

    def test_submission_without_any_admin(self, client):
        response = notify(client, "purchase", type="submission", requestData=PURCHASE)

        assert response.status_code == 400
        assert response.json()["error"] == "No recipient email address available"

    def test_approved_uses_stored_admin_notes(self, client, transport):
        notify(
            client, "purchase", type="approved", staffEmail="staff@example.com",
            requestData={**PURCHASE, "admin_notes": "Buy from the usual vendor"},
        )

        assert transport.sent[0]["subject"] == "Purchase Request Approved: Label printer"
        assert "Buy from the usual vendor" in transport.sent[0]["html"]

    def test_rejected(self, client, transport):
        notify(
            client, "purchase", type="rejected", staffEmail="staff@example.com",
            requestData={**PURCHASE, "rejection_reason": "Over budget"},
        )

        assert transport.sent[0]["subject"] == "Purchase Request Rejected: Label printer"
        assert "Over budget" in transport.sent[0]["html"]

    def test_status_update_follows_request_status(self, client, transport):
        response = notify(client, "purchase", type="status_update", requestData={**PURCHASE, "status": "rejected"})

        assert response.json()["recipients"] == ["staff@example.com"]
        assert transport.sent[0]["subject"] == "Purchase Request Rejected: Label printer"

    def test_status_update_needs_a_decision(self, client):
        response = notify(client, "purchase", type="status_update", requestData={**PURCHASE, "status": "pending"})

        assert response.status_code == 400

    def test_product_uploaded(self, client, transport):
        notify(client, "purchase", type="product_uploaded", requestData=PURCHASE, adminEmail="admin@example.com")

        assert transport.sent[0]["subject"] == "Product Uploaded for Verification: Label printer"
        assert "Zebra ZD220" in transport.sent[0]["html"]

    def test_product_verified(self, client, transport):
        notify(
            client, "purchase", type="product_verified", requestData=PURCHASE,
            staffEmail="staff@example.com", verificationNotes="Serial checked",
        )

        assert transport.sent[0]["subject"] == "Product Verified: Label printer"
        assert "Serial checked" in transport.sent[0]["html"]

    def test_product_rejected(self, client, transport):
        notify(
            client, "purchase", type="product_rejected", requestData=PURCHASE,
            staffEmail="staff@example.com", rejectionReason="Photo is blurred",
        )

        assert transport.sent[0]["subject"] == "Product Rejected: Label printer"
        assert "Photo is blurred" in transport.sent[0]["html"]

    def test_asset_created(self, client, transport):
        notify(
            client, "purchase", type="asset_created", requestData=PURCHASE, staffEmail="staff@example.com",
            assetRequest={"product_name": "Zebra ZD220", "serial_no": "SN-1", "branch": "Main Branch"},
        )

        assert transport.sent[0]["subject"] == "Asset Created: Zebra ZD220"
        assert "Label printer" in transport.sent[0]["html"]

    def test_duplicate_serial(self, client, transport):
        notify(
            client, "purchase", type="duplicate_serial", requestData=PURCHASE,
            staffEmail="staff@example.com", duplicateSerialNo="SN-1",
        )

        assert transport.sent[0]["subject"] == "Duplicate Serial Number: SN-1"

    def test_unconfigured_transport_queues(self, client, db_session, transport):
        transport.configured = False

        response = notify(client, "purchase", type="new_request", requestData=PURCHASE, adminEmail="admin@example.com")

        assert response.json()["message"] == "Notification queued"
        message = db_session.query(EmailOutboxMessage).one()
        assert message.category == EmailCategory.REQUEST_NOTIFICATION.value
        assert transport.sent == []


class TestScrapNotifications:
    def test_new_request(self, client, transport):
        notify(client, "scrap", type="new_request", requestData=SCRAP, adminEmail="admin@example.com")

        assert transport.sent[0]["subject"] == "New Scrap Request: Dell (SN-9)"
        assert "Beyond Repair" in transport.sent[0]["html"]

    def test_approved_goes_to_submitter(self, client, transport):
        response = notify(
            client, "scrap", type="approved", requestData=SCRAP,
            submitterEmail="staff@example.com", adminNotes="Send to recycler",
        )

        assert response.json()["recipients"] == ["staff@example.com"]
        assert transport.sent[0]["subject"] == "Scrap Request Approved: Dell (SN-9)"
        assert "Send to recycler" in transport.sent[0]["html"]

    def test_rejected(self, client, transport):
        notify(
            client, "scrap", type="rejected", requestData=SCRAP,
            submitterEmail="staff@example.com", rejectionReason="Still repairable",
        )

        assert transport.sent[0]["subject"] == "Scrap Request Rejected: Dell (SN-9)"
        assert "Still repairable" in transport.sent[0]["html"]


class TestGroceryNotifications:
    def test_new_request_lists_items(self, client, transport):
        notify(client, "grocery", type="new_request", requestData=GROCERY, adminEmail="admin@example.com")

        assert transport.sent[0]["subject"] == "New Grocery Request: 2 items • Main Branch"
        assert "A4 paper" in transport.sent[0]["html"]
        assert "₹450" in transport.sent[0]["html"]

    def test_approved(self, client, transport):
        notify(client, "grocery", type="approved", requestData=GROCERY, staffEmail="staff@example.com")

        assert transport.sent[0]["subject"] == "Grocery Request Approved: 2 items • Main Branch"

    def test_rejected(self, client, transport):
        notify(
            client, "grocery", type="rejected", requestData=GROCERY,
            staffEmail="staff@example.com", rejectionReason="Stock available",
        )

        assert "Stock available" in transport.sent[0]["html"]


class TestAssetNotifications:
    def test_rejected_reason_is_optional(self, client, transport):
        response = notify(
            client, "asset", type="rejected", requestData={"product_name": "Monitor"},
            staffEmail="staff@example.com",
        )

        assert response.status_code == 200
        assert transport.sent[0]["subject"] == "Asset Request Rejected: Monitor"


class TestLowStockAlert:
    def send(self, client, **payload):
        return client.post("/api/email/send-stationary-low-stock-alert", json=payload)

    def test_missing_fields(self, client, admin):
        response = self.send(client, itemName="A4 paper", branch="Main Branch")

        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields: itemName, quantity, branch, and staffName"
        assert response.json()["details"]["missing_fields"] == ["quantity", "staffName"]

    def test_zero_quantity_alerts_every_admin(self, client, transport, admin, second_admin):
        response = self.send(client, itemName="A4 paper", quantity=0, branch="Main Branch", staffName="Sam Staff")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Low stock alert email sent successfully"
        assert body["details"]["recipients"] == 2
        assert body["details"]["quantity"] == 0
        assert sorted(transport.sent[0]["recipients"]) == ["admin@example.com", "ops@example.com"]
        assert transport.sent[0]["subject"] == "Low Stock Alert: A4 paper • Main Branch"

    def test_no_admins(self, client):
        response = self.send(client, itemName="A4 paper", quantity=1, branch="Main Branch", staffName="Sam Staff")

        assert response.status_code == 400
        assert response.json()["error"] == "No admin emails found"

    def test_queued_under_its_own_category(self, client, db_session, transport, admin):
        transport.configured = False

        self.send(client, itemName="A4 paper", quantity=1, branch="Main Branch", staffName="Sam Staff")

        assert db_session.query(EmailOutboxMessage).one().category == EmailCategory.LOW_STOCK.value


class TestSupportReport:
    REPORT = {
        "ticketNo": "TKT-001",
        "user_name": "Sam Staff",
        "user_email": "staff@example.com",
        "title": "Printer jammed",
        "description": "The counter printer jams on every receipt",
    }

    def send(self, client, **payload):
        return client.post("/api/support/send-report", json=payload)

    def test_missing_fields(self, client, admin):
        response = self.send(client, title="Printer jammed")

        assert response.status_code == 400
        assert response.json()["details"]["missing_fields"] == [
            "ticketNo", "user_name", "user_email", "description"
        ]

    def test_defaults_and_one_message_per_admin(self, client, transport, admin, second_admin):
        response = self.send(client, **self.REPORT)

        assert response.status_code == 200
        assert response.json()["message"] == "Support report sent"
        assert sorted(m["recipients"][0] for m in transport.sent) == ["admin@example.com", "ops@example.com"]
        assert all(len(m["recipients"]) == 1 for m in transport.sent)
        assert transport.sent[0]["subject"] == "[TKT-001] MEDIUM • Printer jammed"
        assert "Other" in transport.sent[0]["html"]
        assert "(staff)" in transport.sent[0]["html"]

    def test_configured_support_mailboxes(self, client, transport, admin, monkeypatch):
        monkeypatch.setattr(settings, "SUPPORT_REPORT_RECIPIENTS", ["help@example.com"])

        response = self.send(
            client, **self.REPORT, priority="high", category="bug",
            attachment_urls=["https://files.example.com/jam.jpg"],
        )

        assert response.json()["recipients"] == ["help@example.com"]
        assert transport.sent[0]["subject"] == "[TKT-001] HIGH • Printer jammed"
        assert "https://files.example.com/jam.jpg" in transport.sent[0]["html"]

    def test_nobody_to_send_to(self, client):
        response = self.send(client, **self.REPORT)

        assert response.status_code == 400
        assert response.json()["error"] == "No support recipients configured"
