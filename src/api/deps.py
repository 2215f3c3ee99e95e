"""Database session and settings dependencies for FastAPI routes."""
from __future__ import annotations

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from core.config import Settings, get_settings
from core.db import SessionLocal


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    FastAPI dependency that provides a database session.

    One session and one transaction per request: committed after the
    handler returns, rolled back if it raises. Sessions come from the
    factory bound to the application's own settings.

    Yields:
        SQLAlchemy Session instance.
    """
    factory = getattr(request.app.state, "session_factory", None) or SessionLocal
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return getattr(request.app.state, "settings", None) or get_settings()


__all__ = ["get_db", "get_app_settings"]
