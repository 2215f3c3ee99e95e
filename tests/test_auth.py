"""Tests for authentication: tokens, password hashing and the auth routes."""
from __future__ import annotations

from datetime import timedelta

import jwt
import pytest

from api.auth_deps import LoginRateLimiter
from core.auth import (
    ALGORITHM,
    TokenPayload,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    verify_password,
)
from core.config import Settings
from core.exceptions import AuthenticationError, RateLimitError
from core.utils import utcnow


# ---------------------------------------------------------------------------
# Unit Tests: Password Hashing
# ---------------------------------------------------------------------------


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_hash_password_returns_different_hash(self):
        """Hash should be different from plain password."""
        password = "secret123"
        hashed = hash_password(password)
        assert hashed != password
        assert len(hashed) > 20

    def test_verify_password_correct(self):
        hashed = hash_password("secret123")
        assert verify_password("secret123", hashed) is True

    def test_verify_password_incorrect(self):
        hashed = hash_password("secret123")
        assert verify_password("wrong-password", hashed) is False

    def test_same_password_different_hashes(self):
        """Same password should produce different hashes (salted)."""
        assert hash_password("secret123") != hash_password("secret123")


# ---------------------------------------------------------------------------
# Unit Tests: Tokens
# ---------------------------------------------------------------------------


class TestTokens:
    """Tests for access and refresh token handling."""

    @pytest.fixture
    def payload(self):
        return TokenPayload(user_id="user-1", email="agent@test.com", role="AGENT")

    def test_access_token_round_trip(self, payload, settings):
        token = create_access_token(payload, settings)
        assert decode_access_token(token, settings) == payload

    def test_refresh_token_round_trip(self, payload, settings):
        token = create_refresh_token(payload, settings)
        assert decode_refresh_token(token, settings) == payload

    def test_refresh_token_rejected_as_access_token(self, payload, settings):
        token = create_refresh_token(payload, settings)
        with pytest.raises(AuthenticationError):
            decode_access_token(token, settings)

    def test_access_token_rejected_as_refresh_token(self, payload, settings):
        token = create_access_token(payload, settings)
        with pytest.raises(AuthenticationError):
            decode_refresh_token(token, settings)

    def test_wrong_type_claim_rejected_even_with_right_secret(self, payload, settings):
        claims = {**payload.claims(), "type": "refresh", "exp": int((utcnow() + timedelta(minutes=5)).timestamp())}
        token = jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token(token, settings)

    def test_expired_token(self, payload, settings):
        claims = {**payload.claims(), "type": "access", "exp": int((utcnow() - timedelta(minutes=1)).timestamp())}
        token = jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)
        with pytest.raises(AuthenticationError, match="Token expired"):
            decode_access_token(token, settings)

    def test_garbage_token(self, settings):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_access_token("not.a.token", settings)


# ---------------------------------------------------------------------------
# Integration Tests: Auth Routes
# ---------------------------------------------------------------------------


class TestLogin:
    """Tests for POST /api/auth/login."""

    def test_login_success(self, client, agent_user):
        response = client.post("/api/auth/login", json={"email": "sarah@test.com", "password": "secret123"})
        assert response.status_code == 200
        data = response.json()
        assert data["accessToken"]
        assert data["refreshToken"]
        assert data["user"] == {
            "id": agent_user.id,
            "name": "Sarah Cohen",
            "email": "sarah@test.com",
            "role": "AGENT",
        }

    def test_login_wrong_password(self, client, agent_user):
        response = client.post("/api/auth/login", json={"email": "sarah@test.com", "password": "wrong-pass"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid credentials"

    def test_login_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "nobody@test.com", "password": "secret123"})
        assert response.status_code == 401

    def test_login_short_password_is_validation_error(self, client):
        response = client.post("/api/auth/login", json={"email": "sarah@test.com", "password": "123"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert any(error["field"] == "password" for error in body["errors"])

    def test_login_invalid_email(self, client):
        response = client.post("/api/auth/login", json={"email": "not-an-email", "password": "secret123"})
        assert response.status_code == 400


class TestLoginRateLimiter:
    """Tests for LoginRateLimiter."""

    def test_allows_up_to_limit(self):
        limiter = LoginRateLimiter(limit=3, window_seconds=60)
        for _ in range(3):
            limiter.check("10.0.0.1", now=100.0)
        with pytest.raises(RateLimitError):
            limiter.check("10.0.0.1", now=100.0)

    def test_keys_are_independent(self):
        limiter = LoginRateLimiter(limit=1, window_seconds=60)
        limiter.check("10.0.0.1", now=100.0)
        limiter.check("10.0.0.2", now=100.0)
        with pytest.raises(RateLimitError):
            limiter.check("10.0.0.1", now=101.0)

    def test_window_expires(self):
        limiter = LoginRateLimiter(limit=1, window_seconds=60)
        limiter.check("10.0.0.1", now=100.0)
        with pytest.raises(RateLimitError):
            limiter.check("10.0.0.1", now=159.0)
        limiter.check("10.0.0.1", now=160.0)


class TestLoginRateLimit:
    """Login attempts beyond the configured limit get a 429."""

    @pytest.fixture
    def settings(self, tmp_path) -> Settings:
        return Settings(
            UPLOAD_DIR=str(tmp_path / "uploads"),
            JWT_SECRET="test-access-secret",
            JWT_REFRESH_SECRET="test-refresh-secret",
            LOGIN_RATE_LIMIT=2,
        )

    def test_third_attempt_is_rejected(self, client, agent_user):
        wrong = {"email": "sarah@test.com", "password": "wrong-pass"}
        assert client.post("/api/auth/login", json=wrong).status_code == 401
        assert client.post("/api/auth/login", json=wrong).status_code == 401

        response = client.post("/api/auth/login", json={"email": "sarah@test.com", "password": "secret123"})
        assert response.status_code == 429
        assert response.json() == {
            "error": "rate_limited",
            "message": "Too many login attempts, please try again later",
        }

    def test_other_routes_are_not_limited(self, client, agent_user, agent_headers):
        wrong = {"email": "sarah@test.com", "password": "wrong-pass"}
        for _ in range(3):
            client.post("/api/auth/login", json=wrong)
        assert client.get("/api/auth/me", headers=agent_headers).status_code == 200


class TestRefresh:
    """Tests for POST /api/auth/refresh."""

    def test_refresh_returns_new_pair(self, client, agent_user):
        login = client.post("/api/auth/login", json={"email": "sarah@test.com", "password": "secret123"}).json()
        response = client.post("/api/auth/refresh", json={"refreshToken": login["refreshToken"]})
        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"accessToken", "refreshToken"}

    def test_refresh_missing_token(self, client):
        response = client.post("/api/auth/refresh", json={})
        assert response.status_code == 400
        assert response.json()["message"] == "No refresh token"

    def test_refresh_without_body(self, client):
        response = client.post("/api/auth/refresh")
        assert response.status_code == 400

    def test_access_token_cannot_refresh(self, client, agent_user, settings):
        token = create_access_token(
            TokenPayload(user_id=agent_user.id, email=agent_user.email, role=agent_user.role), settings
        )
        response = client.post("/api/auth/refresh", json={"refreshToken": token})
        assert response.status_code == 401

    def test_refresh_token_cannot_authenticate(self, client, agent_user, settings):
        token = create_refresh_token(
            TokenPayload(user_id=agent_user.id, email=agent_user.email, role=agent_user.role), settings
        )
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401


class TestCurrentUser:
    """Tests for GET /api/auth/me and bearer handling."""

    def test_me(self, client, agent_user, agent_headers):
        response = client.get("/api/auth/me", headers=agent_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == agent_user.id
        assert data["role"] == "AGENT"
        assert "passwordHash" not in data

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["message"] == "No token provided"

    def test_malformed_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid or expired token"

    def test_token_for_deleted_user(self, client, settings):
        token = create_access_token(TokenPayload(user_id="missing", email="x@test.com", role="ADMIN"), settings)
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "User not found"


class TestRegister:
    """Tests for POST /api/auth/register."""

    def test_admin_registers_agent(self, client, admin_headers):
        response = client.post(
            "/api/auth/register",
            json={"name": "Noa Levi", "email": "noa@test.com", "password": "agent123"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "AGENT"
        assert data["accessToken"] and data["refreshToken"]

        login = client.post("/api/auth/login", json={"email": "noa@test.com", "password": "agent123"})
        assert login.status_code == 200

    def test_admin_registers_admin(self, client, admin_headers):
        response = client.post(
            "/api/auth/register",
            json={"name": "Second Admin", "email": "admin2@test.com", "password": "admin123", "role": "ADMIN"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "ADMIN"

    def test_agent_cannot_register(self, client, agent_headers):
        response = client.post(
            "/api/auth/register",
            json={"name": "Noa Levi", "email": "noa@test.com", "password": "agent123"},
            headers=agent_headers,
        )
        assert response.status_code == 403

    def test_duplicate_email(self, client, admin_headers, agent_user):
        response = client.post(
            "/api/auth/register",
            json={"name": "Sarah Again", "email": "sarah@test.com", "password": "agent123"},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["message"] == "Email already in use"


class TestUsers:
    """Tests for GET /api/auth/users."""

    def test_users_ordered_by_name(self, client, agent_headers, admin_user, agent_user, other_agent):
        response = client.get("/api/auth/users", headers=agent_headers)
        assert response.status_code == 200
        names = [user["name"] for user in response.json()]
        assert names == ["Admin User", "David Levi", "Sarah Cohen"]
        assert all("passwordHash" not in user for user in response.json())
