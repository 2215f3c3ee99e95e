"""Core module exports."""
from __future__ import annotations

from core.config import Settings, get_settings, reload_settings
from core.db import Base, SessionLocal, get_session
from core.exceptions import (
    # Base
    RECRMError,
    # Configuration
    ConfigurationError,
    # Request
    ValidationError,
    UploadError,
    # Access
    AuthenticationError,
    ForbiddenError,
    # Resource
    NotFoundError,
    ConflictError,
    RateLimitError,
)
from core.logging_config import (
    setup_logging,
    get_logger,
    get_context_logger,
    JSONFormatter,
    ContextLogger,
)
from core.models import (
    User,
    Client,
    Property,
    PropertyPhoto,
    Deal,
    Task,
    Activity,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "reload_settings",
    # Database
    "get_session",
    "SessionLocal",
    "Base",
    # Models
    "User",
    "Client",
    "Property",
    "PropertyPhoto",
    "Deal",
    "Task",
    "Activity",
    # Exceptions
    "RECRMError",
    "ConfigurationError",
    "ValidationError",
    "UploadError",
    "AuthenticationError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    # Logging
    "setup_logging",
    "get_logger",
    "get_context_logger",
    "JSONFormatter",
    "ContextLogger",
]
