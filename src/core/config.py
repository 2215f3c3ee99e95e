"""Configuration management for the RE-CRM platform.

All configuration is loaded from environment variables and/or .env file.
The resulting Settings object is frozen: it is built once at process start
and handed to the components that need it.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"

DATABASE_FILE = PROJECT_ROOT / "recrm.db"
ABSOLUTE_DATABASE_URL = f"sqlite:///{DATABASE_FILE.as_posix()}"

DEFAULT_JWT_SECRET = "fallback-secret"
DEFAULT_JWT_REFRESH_SECRET = "fallback-refresh-secret"


def _resolve_database_url(url: str) -> str:
    """
    Convert relative SQLite paths to absolute paths based on PROJECT_ROOT.

    In-memory databases and non-SQLite URLs are returned unchanged.
    """
    if not url.startswith("sqlite:///") or url == "sqlite:///:memory:":
        return url

    path_part = url.replace("sqlite:///", "")

    if path_part.startswith("./") or (not path_part.startswith("/") and ":" not in path_part):
        if path_part.startswith("./"):
            path_part = path_part[2:]
        absolute_path = PROJECT_ROOT / path_part
        return f"sqlite:///{absolute_path.as_posix()}"

    return url


class Settings(BaseSettings):
    """
    Runtime configuration powered by environment variables and .env overrides.

    All settings can be configured via:
    1. Environment variables (highest priority)
    2. .env file in project root (loaded automatically)
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default=ABSOLUTE_DATABASE_URL,
        alias="DATABASE_URL",
        description="SQLAlchemy connection string.",
    )
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE", ge=1)
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW", ge=0)
    db_pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT", ge=1)

    # -------------------------------------------------------------------------
    # Authentication
    # -------------------------------------------------------------------------
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET, alias="JWT_SECRET")
    jwt_refresh_secret: str = Field(default=DEFAULT_JWT_REFRESH_SECRET, alias="JWT_REFRESH_SECRET")
    jwt_access_expire_minutes: int = Field(default=15, alias="JWT_ACCESS_EXPIRE_MINUTES", ge=1)
    jwt_refresh_expire_days: int = Field(default=7, alias="JWT_REFRESH_EXPIRE_DAYS", ge=1)
    login_rate_limit: int = Field(default=20, alias="LOGIN_RATE_LIMIT", ge=1)  # attempts per window
    login_rate_window_seconds: int = Field(default=900, alias="LOGIN_RATE_WINDOW_SECONDS", ge=1)

    # -------------------------------------------------------------------------
    # Uploads
    # -------------------------------------------------------------------------
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_file_size: int = Field(default=5_242_880, alias="MAX_FILE_SIZE", ge=1)
    max_photos_per_upload: int = Field(default=10, alias="MAX_PHOTOS_PER_UPLOAD", ge=1)
    uploads_url_prefix: str = Field(default="/uploads", alias="UPLOADS_URL_PREFIX")

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    frontend_url: str = Field(default="http://localhost:3000", alias="FRONTEND_URL")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8501",
        alias="CORS_ORIGINS",
        description="Comma-separated list of allowed origins.",
    )
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=4000, alias="PORT", ge=1)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")  # "text" or "json"
    environment: str = Field(default="local", alias="ENVIRONMENT")
    dashboard_api_url: str = Field(default="http://localhost:4000/api", alias="DASHBOARD_API_URL")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        lower = v.lower()
        if lower not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lower

    @field_validator("api_prefix", "uploads_url_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Prefixes start with a slash and never end with one."""
        v = "/" + v.strip().strip("/")
        return "" if v == "/" else v

    @field_validator("database_url")
    @classmethod
    def resolve_database_url(cls, v: str) -> str:
        """Convert relative SQLite paths to absolute paths."""
        return _resolve_database_url(v)

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Refuse the built-in token secrets in production."""
        if self.environment == "production":
            if self.jwt_secret == DEFAULT_JWT_SECRET or self.jwt_refresh_secret == DEFAULT_JWT_REFRESH_SECRET:
                raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be set in production")
            if self.jwt_secret == self.jwt_refresh_secret:
                raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def upload_path(self) -> Path:
        """Absolute directory where uploaded photos are written."""
        path = Path(self.upload_dir)
        if not path.is_absolute():
            path = PROJECT_ROOT / path
        return path

    @property
    def allowed_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]
        if self.frontend_url and self.frontend_url not in origins:
            origins.insert(0, self.frontend_url)
        return origins

    def public_summary(self) -> dict:
        """Non-secret configuration for CLI and startup logs."""
        return {
            "environment": self.environment,
            "database_url": self.database_url,
            "api_prefix": self.api_prefix,
            "upload_dir": str(self.upload_path),
            "max_file_size": self.max_file_size,
            "access_token_minutes": self.jwt_access_expire_minutes,
            "refresh_token_days": self.jwt_refresh_expire_days,
            "log_level": self.log_level,
            "log_format": self.log_format,
        }


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. To reload settings,
    call `get_settings.cache_clear()` first.

    Returns:
        Settings object with all configuration.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Clear settings cache and reload from environment.

    Useful for testing or after modifying .env file.
    """
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings", "PROJECT_ROOT"]
