"""Pytest configuration and fixtures."""
from __future__ import annotations

import os
import sys
import tempfile
from datetime import timedelta
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment before any application module reads it
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="recrm-uploads-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from api.app import create_app
from api.deps import get_db
from core.auth import TokenPayload, create_access_token, hash_password
from core.config import Settings
from core.db import Base
from core.models import Client, Deal, Property, Role, Task, User
from core.utils import utcnow
from domain.scoping import Principal


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def engine():
    """In-memory SQLite shared by every connection."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine) -> Session:
    """
    Returns a SQLAlchemy session for testing.

    Each test gets a fresh transaction that is rolled back after the test.
    Session commits end the session transaction and fire its commit hooks
    but leave the connection transaction open.
    """
    connection = engine.connect()
    transaction = connection.begin()

    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=connection,
        join_transaction_mode="rollback_only",
    )
    session = SessionLocal()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        UPLOAD_DIR=str(tmp_path / "uploads"),
        JWT_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app, db_session):
    """TestClient whose requests all run in the test's transaction."""

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        finally:
            # next request reloads relationships instead of reusing stale collections
            db_session.expire_all()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------


def _user(session: Session, name: str, email: str, role: Role, password: str = "secret123") -> User:
    user = User(name=name, email=email, password_hash=hash_password(password), role=role.value)
    session.add(user)
    session.flush()
    return user


@pytest.fixture
def admin_user(db_session) -> User:
    return _user(db_session, "Admin User", "admin@test.com", Role.ADMIN)


@pytest.fixture
def agent_user(db_session) -> User:
    return _user(db_session, "Sarah Cohen", "sarah@test.com", Role.AGENT)


@pytest.fixture
def other_agent(db_session) -> User:
    return _user(db_session, "David Levi", "david@test.com", Role.AGENT)


def bearer(user: User, settings: Settings) -> dict:
    token = create_access_token(TokenPayload(user_id=user.id, email=user.email, role=user.role), settings)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user, settings) -> dict:
    return bearer(admin_user, settings)


@pytest.fixture
def agent_headers(agent_user, settings) -> dict:
    return bearer(agent_user, settings)


@pytest.fixture
def other_agent_headers(other_agent, settings) -> dict:
    return bearer(other_agent, settings)


def principal_for(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email, role=user.role)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def make_client(session: Session, agent: User, **fields) -> Client:
    values = {"full_name": "Moshe Katz", "phone": "+972-52-1234567", "assigned_to": agent.id, "tags": []}
    values.update(fields)
    client = Client(**values)
    session.add(client)
    session.flush()
    return client


def make_property(session: Session, **fields) -> Property:
    values = {"title": "3BR Apartment in Tel Aviv", "address": "Dizengoff St 45, Tel Aviv", "price": 3_500_000}
    values.update(fields)
    prop = Property(**values)
    session.add(prop)
    session.flush()
    return prop


def make_deal(session: Session, client: Client, agent: User, **fields) -> Deal:
    deal = Deal(client_id=client.id, assigned_to=agent.id, **fields)
    session.add(deal)
    session.flush()
    return deal


def make_task(session: Session, agent: User, **fields) -> Task:
    values = {"title": "Call client", "due_at": utcnow() + timedelta(days=1), "assigned_to": agent.id}
    values.update(fields)
    task = Task(**values)
    session.add(task)
    session.flush()
    return task


@pytest.fixture
def agent_client(db_session, agent_user) -> Client:
    return make_client(db_session, agent_user)


@pytest.fixture
def other_client(db_session, other_agent) -> Client:
    return make_client(db_session, other_agent, full_name="Rachel Shapiro", phone="+972-54-9876543")
