"""Authentication dependencies for FastAPI routes."""
from __future__ import annotations

import threading
import time
from collections import defaultdict
from typing import Dict, List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from api.deps import get_app_settings, get_db
from core.auth import decode_access_token
from core.config import Settings
from core.exceptions import AuthenticationError, ForbiddenError, RateLimitError
from core.logging_config import get_logger
from core.models import User
from domain.scoping import Principal

LOGGER = get_logger(__name__)

security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Login Rate Limiting
# ---------------------------------------------------------------------------


class LoginRateLimiter:
    """In-memory sliding window of login attempts per client address."""

    def __init__(self, limit: int, window_seconds: int) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._attempts: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def check(self, key: str, now: Optional[float] = None) -> None:
        """Record an attempt for `key`; raise RateLimitError once the window is full."""
        now = time.monotonic() if now is None else now
        with self._lock:
            recent = [t for t in self._attempts[key] if now - t < self.window_seconds]
            if len(recent) >= self.limit:
                self._attempts[key] = recent
                LOGGER.warning("Login rate limit hit for %s", key)
                raise RateLimitError("Too many login attempts, please try again later")
            recent.append(now)
            self._attempts[key] = recent


def check_login_rate_limit(request: Request) -> None:
    """Raise 429 if this client has used up its login attempts for the window."""
    limiter: LoginRateLimiter = request.app.state.login_limiter
    client_ip = request.client.host if request.client else "unknown"
    limiter.check(client_ip)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
) -> Principal:
    """
    Validate the bearer access token and return the caller.

    Raises AuthenticationError (401) if the token is missing, invalid,
    expired, a refresh token, or names a user that no longer exists.
    """
    if credentials is None:
        raise AuthenticationError("No token provided")

    try:
        payload = decode_access_token(credentials.credentials, settings)
    except AuthenticationError:
        LOGGER.warning("Rejected access token")
        raise AuthenticationError("Invalid or expired token")

    user = db.get(User, payload.user_id)
    if user is None:
        raise AuthenticationError("User not found")

    return Principal(user_id=user.id, email=user.email, role=user.role)


def require_admin(current_user: Principal = Depends(get_current_user)) -> Principal:
    """Require the current user to have the ADMIN role."""
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


__all__ = ["security", "LoginRateLimiter", "check_login_rate_limit", "get_current_user", "require_admin"]
