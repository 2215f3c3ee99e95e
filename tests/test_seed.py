"""Tests for demo seeding and database bootstrap."""
from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from api.app import create_app
from core.auth import verify_password
from core.config import Settings
from core.db import REQUIRED_TABLES, init_db, validate_database
from core.models import Client, Deal, User
from services.seed import DEMO_USERS, seed_demo_data


# ---------------------------------------------------------------------------
# Unit Tests: Seed
# ---------------------------------------------------------------------------


class TestSeedDemoData:
    """Tests for seed_demo_data."""

    def test_seed_creates_demo_dataset(self, db_session):
        summary = seed_demo_data(db_session)
        assert summary.as_dict() == {
            "users": 3,
            "clients": 5,
            "properties": 5,
            "deals": 5,
            "tasks": 5,
            "activities": 5,
        }

        admin = db_session.query(User).filter(User.email == "admin@recrm.com").one()
        assert admin.role == "ADMIN"
        assert verify_password("admin123", admin.password_hash)

        moshe = db_session.query(Client).filter(Client.full_name == "Moshe Katz").one()
        assert moshe.tags == ["VIP", "Buyer"]

    def test_seed_twice_does_not_duplicate(self, db_session):
        seed_demo_data(db_session)
        again = seed_demo_data(db_session)

        assert again.users == 0
        assert again.clients == 0
        assert db_session.query(User).count() == len(DEMO_USERS)
        assert db_session.query(Deal).count() == 5

    def test_existing_user_is_kept(self, db_session, admin_user):
        summary = seed_demo_data(db_session)
        assert summary.users == 3
        assert db_session.query(User).count() == 4


# ---------------------------------------------------------------------------
# Unit Tests: Database Bootstrap
# ---------------------------------------------------------------------------


class TestDatabaseBootstrap:
    """Tests for init_db and validate_database on an empty database."""

    def test_missing_tables_then_created(self):
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        before = validate_database(engine)
        assert before["status"] == "missing_tables"
        assert sorted(before["tables_missing"]) == sorted(REQUIRED_TABLES)

        result = init_db(engine)
        assert result["status"] == "success"
        assert set(REQUIRED_TABLES) <= set(result["tables_created"])

        after = validate_database(engine)
        assert after["status"] == "ok"
        assert after["tables_missing"] == []

    def test_app_uses_its_own_database(self, tmp_path):
        db_file = tmp_path / "crm.db"
        settings = Settings(
            DATABASE_URL=f"sqlite:///{db_file.as_posix()}",
            UPLOAD_DIR=str(tmp_path / "uploads"),
            JWT_SECRET="test-access-secret",
            JWT_REFRESH_SECRET="test-refresh-secret",
        )
        app = create_app(settings)

        with TestClient(app) as client:
            response = client.post("/api/auth/login", json={"email": "nobody@test.com", "password": "secret123"})
            assert response.status_code == 401
            assert client.get("/health/detailed").json()["checks"]["database"]["status"] == "ok"

        assert db_file.exists()
        assert validate_database(create_engine(settings.database_url))["status"] == "ok"


# ---------------------------------------------------------------------------
# Integration Tests: Health
# ---------------------------------------------------------------------------


class TestHealth:
    """Tests for the health routes."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "timestamp" in data

    def test_detailed_health(self, client):
        data = client.get("/health/detailed").json()
        assert data["status"] == "ok"
        assert data["checks"]["database"]["status"] == "ok"

    def test_unknown_route(self, client):
        response = client.get("/api/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"
