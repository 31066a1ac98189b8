"""
Tests for authentication endpoints (signup, login, me) and the user list.

These tests verify:
  - Successful signup creates a user and returns a JWT
  - Duplicate email signup is rejected (409 Conflict), case-insensitively
  - Successful login returns a valid JWT
  - Wrong password and unknown email get the same 401 (anti-enumeration)
  - Short passwords and malformed emails are rejected (400)
  - Missing, malformed and tampered tokens are rejected (401)
  - The admin flag follows the ADMIN_EMAILS allow-list
"""

from datetime import timedelta

from ledgerbook.security import create_access_token


# ---------------------------------------------------------------------------
# Signup Tests
# ---------------------------------------------------------------------------

class TestSignup:
    """Tests for POST /auth/signup."""

    async def test_signup_success(self, client):
        """A valid signup should return 201 with user_id, email, and token."""
        response = await client.post(
            "/auth/signup",
            json={"email": "newuser@example.com", "password": "StrongPass99!"},
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "newuser@example.com"
        assert data["is_admin"] is False
        assert data["token_type"] == "bearer"
        assert data["token"]
        assert data["user_id"]

    async def test_signup_duplicate_email(self, client, make_user):
        """Signing up with an already-registered email should return 409."""
        await make_user("duplicate@example.com")

        response = await client.post(
            "/auth/signup",
            json={"email": "Duplicate@Example.com", "password": "SecurePass123!"},
        )
        assert response.status_code == 409
        body = response.json()
        assert body["error_type"] == "duplicate_email"
        assert "already registered" in body["error"]

    async def test_signup_short_password(self, client):
        """Passwords shorter than 8 characters should be rejected."""
        response = await client.post(
            "/auth/signup",
            json={"email": "short@example.com", "password": "short"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "invalid_input"

    async def test_signup_invalid_email(self, client):
        response = await client.post(
            "/auth/signup",
            json={"email": "not-an-email", "password": "SecurePass123!"},
        )
        assert response.status_code == 400
        assert "email" in response.json()["error"]

    async def test_admin_flag_from_allow_list(self, client):
        response = await client.post(
            "/auth/signup",
            json={"email": "admin@example.com", "password": "SecurePass123!"},
        )
        assert response.status_code == 201
        assert response.json()["data"]["is_admin"] is True


# ---------------------------------------------------------------------------
# Login Tests
# ---------------------------------------------------------------------------

class TestLogin:
    """Tests for POST /auth/login."""

    async def test_login_success(self, client, make_user):
        user = await make_user("login@example.com")

        response = await client.post(
            "/auth/login",
            json={"email": "login@example.com", "password": "SecurePass123!"},
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user_id"] == user.id
        assert data["token"]

    async def test_login_wrong_password(self, client, make_user):
        await make_user("wrongpass@example.com")

        response = await client.post(
            "/auth/login",
            json={"email": "wrongpass@example.com", "password": "WrongPassword1!"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    async def test_login_unknown_email_same_error(self, client):
        """An unknown email must be indistinguishable from a wrong password."""
        response = await client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": "SecurePass123!"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"
        assert response.headers["WWW-Authenticate"] == "Bearer"


# ---------------------------------------------------------------------------
# Token Tests
# ---------------------------------------------------------------------------

class TestMe:
    """Tests for GET /auth/me and token resolution."""

    async def test_me_returns_principal(self, client, editor):
        response = await client.get("/auth/me", headers=editor.headers)
        assert response.status_code == 200
        assert response.json()["data"] == {
            "id": editor.id,
            "email": "editor@example.com",
            "is_admin": False,
        }

    async def test_me_admin(self, client, admin):
        response = await client.get("/auth/me", headers=admin.headers)
        assert response.json()["data"]["is_admin"] is True

    async def test_missing_token(self, client):
        response = await client.get("/auth/me")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized", "error_type": "unauthenticated"}

    async def test_garbage_token(self, client):
        response = await client.get(
            "/auth/me", headers={"Authorization": "Bearer not.a.token"}
        )
        assert response.status_code == 401

    async def test_expired_token(self, client, editor):
        token = create_access_token({"sub": editor.id}, expires_delta=timedelta(minutes=-1))
        response = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_token_for_unknown_user(self, client):
        token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})
        response = await client.get(
            "/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401


class TestListUsers:
    """Tests for GET /users."""

    async def test_list_users(self, client, editor, viewer):
        response = await client.get("/users", headers=editor.headers)
        assert response.status_code == 200
        assert response.json()["data"] == [
            {"id": editor.id, "email": "editor@example.com"},
            {"id": viewer.id, "email": "viewer@example.com"},
        ]

    async def test_list_users_requires_auth(self, client):
        response = await client.get("/users")
        assert response.status_code == 401
