"""Authentication routes: login, refresh, current user, registration, user list."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from api.auth_deps import check_login_rate_limit, get_current_user, require_admin
from api.deps import get_app_settings, get_db
from api.schemas import CamelModel
from api.serializers import user_public
from core.auth import TokenPayload, decode_refresh_token, hash_password, issue_token_pair, verify_password
from core.config import Settings
from core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from core.logging_config import get_logger
from core.models import Role, User
from domain.scoping import Principal

router = APIRouter()
LOGGER = get_logger(__name__)


# =============================================================================
# Request Models
# =============================================================================


class LoginRequest(CamelModel):
    """Login request body."""

    email: EmailStr
    password: str = Field(..., min_length=6)


class RefreshRequest(CamelModel):
    """Token refresh request body."""

    refresh_token: Optional[str] = None


class RegisterRequest(CamelModel):
    """Registration request body (ADMIN only)."""

    name: str = Field(..., min_length=2)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: Role = Role.AGENT


def _payload(user: User) -> TokenPayload:
    return TokenPayload(user_id=user.id, email=user.email, role=user.role)


def _login_user(user: User) -> Dict[str, Any]:
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}


# =============================================================================
# Routes
# =============================================================================


@router.post("/login", dependencies=[Depends(check_login_rate_limit)])
async def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Authenticate with email and password and return a token pair."""
    user = db.query(User).filter(User.email == body.email).first()
    if user is None or not verify_password(body.password, user.password_hash):
        LOGGER.warning("Failed login attempt for: %s", body.email)
        raise AuthenticationError("Invalid credentials")

    LOGGER.info("User logged in: %s", user.email)
    return {**issue_token_pair(_payload(user), settings), "user": _login_user(user)}


@router.post("/refresh")
async def refresh(
    body: Optional[RefreshRequest] = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, str]:
    """
    Exchange a refresh token for a new token pair.

    Tokens are stateless: the old refresh token stays valid until it expires.
    """
    if body is None or not body.refresh_token:
        raise ValidationError("No refresh token")

    try:
        payload = decode_refresh_token(body.refresh_token, settings)
    except AuthenticationError:
        LOGGER.warning("Rejected refresh token")
        raise AuthenticationError("Invalid refresh token")

    user = db.get(User, payload.user_id)
    if user is None:
        raise AuthenticationError("User not found")

    return issue_token_pair(_payload(user), settings)


@router.get("/me")
async def me(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Profile of the authenticated user."""
    user = db.get(User, current_user.user_id)
    if user is None:
        raise NotFoundError("User", current_user.user_id)
    return user_public(user)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    current_user: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """Create a user account. Only admins can add users."""
    if db.query(User.id).filter(User.email == body.email).first() is not None:
        raise ConflictError("Email already in use")

    user = User(
        name=body.name,
        email=body.email,
        password_hash=hash_password(body.password),
        role=Role(body.role).value,
    )
    db.add(user)
    db.flush()

    LOGGER.info("User registered: %s (%s) by %s", user.email, user.role, current_user.email)
    return {**issue_token_pair(_payload(user), settings), "user": _login_user(user)}


@router.get("/users")
async def list_users(
    current_user: Principal = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """All users, for assignee pickers."""
    return [user_public(user) for user in db.query(User).order_by(User.name.asc()).all()]
