"""Custom exceptions for the RE-CRM application.

Every error raised by the domain layer carries the HTTP status it maps to,
so the API exception handlers never need to inspect the exception type.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class RECRMError(Exception):
    """Base exception for all application errors."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"error": self.error, "message": self.message}


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(RECRMError):
    """Raised when required configuration is missing or invalid."""

    pass


# =============================================================================
# Request Errors
# =============================================================================


class ValidationError(RECRMError):
    """Raised when request data fails validation."""

    status_code = 400
    error = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        errors: Optional[List[Dict[str, str]]] = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, object]:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class UploadError(ValidationError):
    """Raised when an uploaded file is missing, too large or of the wrong type."""

    error = "upload_error"


# =============================================================================
# Access Errors
# =============================================================================


class AuthenticationError(RECRMError):
    """Raised when credentials or tokens are missing, invalid or expired."""

    status_code = 401
    error = "unauthorized"


class ForbiddenError(RECRMError):
    """Raised when the caller is authenticated but lacks access."""

    status_code = 403
    error = "forbidden"


# =============================================================================
# Resource Errors
# =============================================================================


class NotFoundError(RECRMError):
    """Raised when a referenced record does not exist."""

    status_code = 404
    error = "not_found"

    def __init__(self, resource: str, identifier: Optional[str] = None) -> None:
        message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.identifier = identifier


class ConflictError(RECRMError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409
    error = "conflict"


# =============================================================================
# Throttling Errors
# =============================================================================


class RateLimitError(RECRMError):
    """Raised when a caller has made too many attempts within the window."""

    status_code = 429
    error = "rate_limited"


__all__ = [
    # Base
    "RECRMError",
    # Configuration
    "ConfigurationError",
    # Request
    "ValidationError",
    "UploadError",
    # Access
    "AuthenticationError",
    "ForbiddenError",
    # Resource
    "NotFoundError",
    "ConflictError",
    # Throttling
    "RateLimitError",
]
