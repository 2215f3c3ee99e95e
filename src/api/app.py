"""FastAPI application entry point with global error handling."""
from __future__ import annotations

import os
import sys

# Add src/ to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.auth_deps import LoginRateLimiter
from api.routes import auth, clients, dashboard, deals, health, properties, tasks
from core.config import Settings, get_settings
from core.db import build_engine, build_session_factory, init_db, validate_database
from core.exceptions import AuthenticationError, ConfigurationError, RECRMError
from core.logging_config import get_context_logger, get_logger, setup_logging

LOGGER = get_logger(__name__)


def _field_errors(exc: RequestValidationError) -> list:
    """Flatten pydantic errors to [{field, message}], dropping the body/query prefix."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location), "message": error.get("msg", "Invalid value")})
    return errors


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Configuration to run with; defaults to the process settings.

    Returns:
        Configured FastAPI application instance with:
        - CORS middleware and request logging
        - Global exception handlers
        - All API routes under the configured prefix
        - Uploaded photos served as static files
    """
    settings = settings or get_settings()
    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """
        Application lifespan handler.

        Sets up logging, validates the database and creates missing tables.
        The app still starts when the database is unreachable.
        """
        setup_logging(level=settings.log_level, json_format=settings.log_format == "json")
        LOGGER.info("API application starting", extra={"extra_data": settings.public_summary()})

        db_status = validate_database(engine)
        if db_status["status"] == "error":
            LOGGER.error(
                "Database validation failed - app will start without database",
                extra={"extra_data": {"errors": db_status["errors"]}},
            )
        elif db_status["status"] == "missing_tables":
            LOGGER.warning(
                "Missing database tables detected - creating",
                extra={"extra_data": {"missing": db_status["tables_missing"]}},
            )
            init_result = init_db(engine)
            LOGGER.info(
                "Database tables created",
                extra={"extra_data": {"created": init_result["tables_created"]}},
            )
        else:
            LOGGER.info("Database validation passed")

        yield
        LOGGER.info("API application shutting down")
        engine.dispose()

    application = FastAPI(
        title="RE-CRM",
        description="Real-estate CRM: clients, properties, deal pipeline, tasks and activity log",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    application.state.login_limiter = LoginRateLimiter(settings.login_rate_limit, settings.login_rate_window_seconds)

    # -------------------------------------------------------------------------
    # Middleware
    # -------------------------------------------------------------------------
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @application.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex[:12]
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        get_context_logger(__name__, request_id=request_id).info(
            "%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms
        )
        response.headers["X-Request-ID"] = request_id
        return response

    # -------------------------------------------------------------------------
    # Global Exception Handlers
    # -------------------------------------------------------------------------

    @application.exception_handler(ConfigurationError)
    async def configuration_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        """Handle configuration errors without leaking details."""
        LOGGER.error(f"Configuration error: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "configuration_error", "message": "Service misconfiguration"},
        )

    @application.exception_handler(RECRMError)
    async def app_error_handler(request: Request, exc: RECRMError) -> JSONResponse:
        """Handle domain errors; each carries its own status code."""
        extra = {"extra_data": {"path": request.url.path, "status": exc.status_code}}
        if exc.status_code >= 500:
            LOGGER.error(f"Application error: {exc}", exc_info=True, extra=extra)
        else:
            LOGGER.warning(f"{exc.error}: {exc}", extra=extra)

        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @application.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Request body or query failed validation."""
        errors = _field_errors(exc)
        LOGGER.warning("Validation error", extra={"extra_data": {"path": request.url.path, "errors": errors}})
        return JSONResponse(
            status_code=400,
            content={"error": "validation_error", "message": "Validation error", "errors": errors},
        )

    @application.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Framework errors such as unknown routes or wrong methods."""
        error = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": error, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @application.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything else is a 500; the traceback goes to the log only."""
        LOGGER.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "message": "Internal server error"},
        )

    # -------------------------------------------------------------------------
    # Include Routers
    # -------------------------------------------------------------------------
    prefix = settings.api_prefix
    application.include_router(health.router, tags=["Health"])
    application.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])
    application.include_router(clients.router, prefix=f"{prefix}/clients", tags=["Clients"])
    application.include_router(properties.router, prefix=f"{prefix}/properties", tags=["Properties"])
    application.include_router(deals.router, prefix=f"{prefix}/deals", tags=["Deals"])
    application.include_router(tasks.router, prefix=f"{prefix}/tasks", tags=["Tasks"])
    application.include_router(dashboard.router, prefix=f"{prefix}/dashboard", tags=["Dashboard"])

    # -------------------------------------------------------------------------
    # Uploaded Photos
    # -------------------------------------------------------------------------
    upload_path = settings.upload_path
    upload_path.mkdir(parents=True, exist_ok=True)
    application.mount(
        settings.uploads_url_prefix,
        StaticFiles(directory=str(upload_path), check_dir=False),
        name="uploads",
    )

    return application


# Create the application instance
app = create_app()

LOGGER.info("API application initialized")
