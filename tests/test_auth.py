"""
Login, bearer-token context and the health endpoints.
"""

from datetime import timedelta

from portal.core.constants import UserType
from portal.core.security import create_access_token, get_password_hash, verify_password

PASSWORD = "Secret123!"


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = get_password_hash(PASSWORD)

        assert hashed != PASSWORD
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("wrong", hashed)


class TestLogin:
    """Admins and staff log in with email and password."""

    def test_admin_login(self, client, admin):
        response = client.post("/api/auth/login", json={"email": "Admin@Example.com", "password": PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["user_type"] == "admin"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json()["user_id"] == admin.id

    def test_staff_login_carries_branch(self, client, staff):
        response = client.post("/api/auth/login", json={"email": "staff@example.com", "password": PASSWORD})

        user = response.json()["user"]
        assert user["user_type"] == "staff"
        assert user["branch"] == "Main Branch"
        assert user["role"] == "staff"

    def test_wrong_password(self, client, staff):
        response = client.post("/api/auth/login", json={"email": "staff@example.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_001"

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

        assert response.status_code == 401

    def test_inactive_staff(self, client, db_session, staff):
        staff.is_active = False
        db_session.commit()

        response = client.post("/api/auth/login", json={"email": "staff@example.com", "password": PASSWORD})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_004"

    def test_malformed_email(self, client):
        response = client.post("/api/auth/login", json={"email": "not-an-email", "password": PASSWORD})

        assert response.status_code == 400
        assert response.json()["details"]["errors"][0]["field"] == "email"


class TestBearerContext:
    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    def test_expired_token(self, client, staff):
        token = create_access_token(
            {"sub": staff.id, "user_type": UserType.STAFF.value}, expires_delta=timedelta(minutes=-1)
        )

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTH_002"

    def test_deleted_account(self, client, db_session, staff, staff_headers):
        db_session.delete(staff)
        db_session.commit()

        response = client.get("/api/auth/me", headers=staff_headers)

        assert response.status_code == 401


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_root(self, client):
        assert client.get("/").json()["api"] == "/api"
