"""Tests for the authentication endpoints."""

from datetime import timedelta

from gigboard.api.auth import AUTH_COOKIE_NAME, create_access_token
from gigboard.market.users import UserRole


def register(client, email="ada@example.com", password="secret-pass", name="Ada Lovelace"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


class TestRegister:
    def test_register_returns_token_and_profile(self, client):
        response = register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "ada@example.com"
        assert body["user"]["role"] == UserRole.USER.value
        assert body["token_type"] == "bearer"
        assert body["access_token"]
        assert "password_hash" not in body["user"]
        assert AUTH_COOKIE_NAME in response.cookies

    def test_duplicate_email_conflicts(self, client):
        register(client)

        response = register(client, email="ADA@example.com")

        assert response.status_code == 409

    def test_invalid_email(self, client):
        response = register(client, email="not-an-email")

        assert response.status_code == 400
        assert "valid email" in response.json()["detail"]

    def test_short_password_fails_validation(self, client):
        response = register(client, password="123")

        assert response.status_code == 400
        assert response.json()["detail"].startswith("Validation failed")


class TestLogin:
    def test_login(self, client):
        register(client)

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "secret-pass"})

        assert response.status_code == 200
        assert response.json()["user"]["name"] == "Ada Lovelace"

    def test_wrong_password(self, client):
        register(client)

        response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "wrong-pass"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    def test_unknown_email_has_same_message(self, client):
        response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"


class TestSession:
    def test_me_with_bearer(self, client, make_user):
        user, headers = make_user("Grace Hopper")

        response = client.get("/api/auth/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["id"] == user.id

    def test_me_with_cookie_then_logout(self, client):
        register(client)

        assert client.get("/api/auth/me").status_code == 200

        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json()["message"] == "Logged out successfully"

        assert client.get("/api/auth/me").status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client, make_user, context):
        user, _ = make_user()
        token = create_access_token(user, context.settings, expires_delta=timedelta(seconds=-1))

        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestServiceEndpoints:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == "gigboard"
        assert body["status"] == "ok"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["backend"] == "memory"
