"""
Branch opening balances.
"""

from datetime import date


class TestOpeningBalanceAdministration:
    """Admin-only writes, authenticated reads."""

    def test_create_and_read(self, client, admin_headers, staff_headers):
        response = client.put(
            "/api/opening-balance/East",
            json={"opening_balance": 2500, "auto_approve": False},
            headers=admin_headers,
        )

        assert response.status_code == 200
        created = response.json()["data"]
        assert created["branch"] == "East"
        assert created["opening_balance"] == 2500.0
        assert created["auto_approve"] is False
        assert created["period_start"] is not None

        fetched = client.get("/api/opening-balance/east", headers=staff_headers)
        assert fetched.json()["data"]["id"] == created["id"]

    def test_overwrite_keeps_flag_when_not_given(self, client, admin_headers, manual_branch):
        response = client.put(
            "/api/opening-balance/North Branch",
            json={"opening_balance": 4000},
            headers=admin_headers,
        )

        data = response.json()["data"]
        assert data["opening_balance"] == 4000.0
        assert data["auto_approve"] is False

    def test_unset_flag_reports_default(self, client, admin_headers):
        client.put("/api/opening-balance/West", json={"opening_balance": 10}, headers=admin_headers)

        response = client.get("/api/opening-balance/West", headers=admin_headers)

        assert response.json()["data"]["auto_approve"] is True

    def test_staff_cannot_write(self, client, staff_headers):
        response = client.put("/api/opening-balance/East", json={"opening_balance": 1}, headers=staff_headers)

        assert response.status_code == 403
        assert response.json()["error_code"] == "AUTH_003"

    def test_list(self, client, staff_headers, auto_branch, manual_branch):
        response = client.get("/api/opening-balance", headers=staff_headers)

        assert [b["branch"] for b in response.json()["data"]] == ["Main Branch", "North Branch"]

    def test_unknown_branch(self, client, staff_headers):
        response = client.get("/api/opening-balance/Nowhere", headers=staff_headers)

        assert response.status_code == 404

    def test_delete(self, client, admin_headers, manual_branch):
        response = client.delete("/api/opening-balance/North Branch", headers=admin_headers)
        assert response.status_code == 200

        assert client.get("/api/opening-balance/North Branch", headers=admin_headers).status_code == 404
        assert client.delete("/api/opening-balance/North Branch", headers=admin_headers).status_code == 404


class TestOpeningBalanceHistory:
    """Signed adjustments appended to the history."""

    def test_append_adjusts_balance(self, client, admin, admin_headers, auto_branch):
        response = client.post(
            "/api/opening-balance/append",
            json={
                "branch": "Main Branch",
                "amount": -200,
                "date": date.today().isoformat(),
                "note": "Float returned to head office",
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["opening_balance"] == 800.0
        assert data["balance_history"] == [{
            "date": date.today().isoformat(),
            "amount": -200.0,
            "note": "Float returned to head office",
            "added_by": admin.name,
        }]

    def test_append_requires_fields(self, client, admin_headers, auto_branch):
        response = client.post("/api/opening-balance/append", json={"branch": "Main Branch"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["details"]["missing_fields"] == ["amount", "date"]

    def test_append_unknown_branch(self, client, admin_headers):
        response = client.post(
            "/api/opening-balance/append",
            json={"branch": "Nowhere", "amount": 10, "date": "2024-04-01"},
            headers=admin_headers,
        )

        assert response.status_code == 404

    def test_new_entries_start_from_adjusted_balance(self, client, admin_headers, staff_headers, auto_branch):
        client.post(
            "/api/opening-balance/append",
            json={"branch": "Main Branch", "amount": 500, "date": date.today().isoformat()},
            headers=admin_headers,
        )

        response = client.post(
            "/api/cashbook/transactions",
            json={"branch": "Main Branch", "transaction_date": date.today().isoformat(), "cash_in": 100},
            headers=staff_headers,
        )

        assert response.json()["data"]["balance"] == 1600.0
