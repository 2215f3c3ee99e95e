"""Database connection and session management."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Generator, List

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import NullPool

from .config import Settings, get_settings
from .logging_config import get_logger

LOGGER = get_logger(__name__)

# Tables that MUST exist for the API to serve requests
REQUIRED_TABLES = ["user", "client", "property", "property_photo", "deal", "task", "activity"]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(settings: Settings) -> Engine:
    """
    Create an engine for the configured database.

    SQLite gets NullPool with cross-thread access and foreign keys enabled;
    everything else gets a pre-pinged connection pool.
    """
    if settings.is_sqlite:
        new_engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        event.listen(new_engine, "connect", _enable_sqlite_foreign_keys)
        return new_engine

    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_pre_ping=True,
    )


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


# Process-wide engine for the CLI and scripts; the API builds its own from
# the settings it was created with.
engine = build_engine(get_settings())

# Session factory
SessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# ---------------------------------------------------------------------------
# Transaction Hooks
# ---------------------------------------------------------------------------

_ON_COMMIT = "on_commit"
_ON_ROLLBACK = "on_rollback"


def on_commit(session: Session, callback: Callable[[], None]) -> None:
    """Run `callback` once the session's current transaction commits."""
    session.info.setdefault(_ON_COMMIT, []).append(callback)


def on_rollback(session: Session, callback: Callable[[], None]) -> None:
    """Run `callback` if the session's current transaction rolls back."""
    session.info.setdefault(_ON_ROLLBACK, []).append(callback)


def _run_hooks(session: Session, key: str) -> None:
    callbacks = session.info.pop(key, [])
    session.info.pop(_ON_COMMIT, None)
    session.info.pop(_ON_ROLLBACK, None)
    for callback in callbacks:
        try:
            callback()
        except Exception as e:
            LOGGER.error("Transaction hook failed: %s", e, exc_info=True)


@event.listens_for(Session, "after_commit")
def _after_commit(session: Session) -> None:
    _run_hooks(session, _ON_COMMIT)


@event.listens_for(Session, "after_rollback")
def _after_rollback(session: Session) -> None:
    _run_hooks(session, _ON_ROLLBACK)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.

    Yields:
        SQLAlchemy Session object.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> dict:
    """
    Create any missing tables.

    Returns:
        Dict with the tables created and the tables that already existed.
    """
    # Import models to ensure they are registered with Base
    from . import models  # noqa: F401

    target = bind or engine
    existing_tables = set(inspect(target).get_table_names())
    Base.metadata.create_all(bind=target)
    final_tables = set(inspect(target).get_table_names())

    created = sorted(final_tables - existing_tables)
    if created:
        LOGGER.info("Created tables: %s", ", ".join(created))

    return {
        "status": "success",
        "tables_created": created,
        "tables_existing": sorted(existing_tables),
    }


def _missing_tables(bind: Engine) -> List[str]:
    existing = set(inspect(bind).get_table_names())
    return [t for t in REQUIRED_TABLES if t not in existing]


def validate_database(bind: Engine | None = None) -> dict:
    """
    Validate database connection and required tables.

    Call this at application startup to ensure the database is ready.

    Returns:
        Dict with validation results.
    """
    target = bind or engine
    result = {
        "status": "ok",
        "tables_missing": [],
        "errors": [],
    }

    try:
        with target.connect() as conn:
            conn.execute(text("SELECT 1"))

        missing = _missing_tables(target)
        result["tables_missing"] = missing
        if missing:
            result["status"] = "missing_tables"
            result["errors"].append(f"Missing required tables: {missing}")
    except Exception as e:
        LOGGER.error("Database validation failed: %s", e)
        result["status"] = "error"
        result["errors"].append(str(e))

    return result


__all__ = [
    "Base",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_session",
    "init_db",
    "on_commit",
    "on_rollback",
    "validate_database",
    "REQUIRED_TABLES",
]
