"""Authentication utilities: JWT tokens and password hashing.

Access and refresh tokens are HS256 JWTs signed with separate secrets and
carrying a `type` claim, so one can never be presented as the other. There is
no server-side token state.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from core.config import Settings
from core.exceptions import AuthenticationError
from core.utils import utcnow

ALGORITHM = "HS256"
ACCESS = "access"
REFRESH = "refresh"

# ---------------------------------------------------------------------------
# Password Hashing
# ---------------------------------------------------------------------------

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password for storage."""
    return _pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return _pwd_context.verify(plain_password, hashed_password)


# ---------------------------------------------------------------------------
# Token Creation/Decoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenPayload:
    """Identity claims carried by both token kinds."""

    user_id: str
    email: str
    role: str

    def claims(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "email": self.email, "role": self.role}


def _encode(payload: TokenPayload, secret: str, token_type: str, lifetime: timedelta) -> str:
    now = utcnow()
    claims = payload.claims()
    claims.update(
        {
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
        }
    )
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def _decode(token: str, secret: str, token_type: str) -> TokenPayload:
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc

    if claims.get("type") != token_type:
        raise AuthenticationError("Invalid token")
    try:
        return TokenPayload(user_id=claims["userId"], email=claims["email"], role=claims["role"])
    except KeyError as exc:
        raise AuthenticationError("Invalid token") from exc


def create_access_token(payload: TokenPayload, settings: Settings) -> str:
    """Create a short-lived access token."""
    return _encode(
        payload,
        settings.jwt_secret,
        ACCESS,
        timedelta(minutes=settings.jwt_access_expire_minutes),
    )


def create_refresh_token(payload: TokenPayload, settings: Settings) -> str:
    """Create a long-lived refresh token."""
    return _encode(
        payload,
        settings.jwt_refresh_secret,
        REFRESH,
        timedelta(days=settings.jwt_refresh_expire_days),
    )


def decode_access_token(token: str, settings: Settings) -> TokenPayload:
    """
    Decode and validate an access token.

    Raises:
        AuthenticationError: if the token is malformed, expired, forged or a refresh token.
    """
    return _decode(token, settings.jwt_secret, ACCESS)


def decode_refresh_token(token: str, settings: Settings) -> TokenPayload:
    """Decode and validate a refresh token."""
    return _decode(token, settings.jwt_refresh_secret, REFRESH)


def issue_token_pair(payload: TokenPayload, settings: Settings) -> Dict[str, str]:
    return {
        "accessToken": create_access_token(payload, settings),
        "refreshToken": create_refresh_token(payload, settings),
    }


__all__ = [
    "TokenPayload",
    "hash_password",
    "verify_password",
    "create_access_token",
    "create_refresh_token",
    "decode_access_token",
    "decode_refresh_token",
    "issue_token_pair",
]
