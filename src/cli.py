#!/usr/bin/env python3
"""Command Line Interface for RE-CRM.

Usage:
    cd src
    python cli.py server        # Start API server
    python cli.py init-db       # Create missing tables
    python cli.py seed          # Load demo users and sample records
    python cli.py create-user   # Add a user account
    python cli.py dashboard     # Start the Streamlit dashboard
    python cli.py info          # Show configuration
"""
from __future__ import annotations

import sys
from pathlib import Path

import typer
import uvicorn

from core.config import get_settings
from core.db import get_session
from core.logging_config import get_logger, setup_logging
from core.models import Role

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

app = typer.Typer(help="RE-CRM CLI")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """RE-CRM - Real-estate client, property and deal pipeline manager."""
    log_level = "DEBUG" if verbose else SETTINGS.log_level
    setup_logging(level=log_level, json_format=SETTINGS.log_format == "json")


# =============================================================================
# Server Commands
# =============================================================================


@app.command("server")
def run_server(
    host: str = typer.Option(SETTINGS.host, help="Host to bind to"),
    port: int = typer.Option(SETTINGS.port, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    typer.echo(f"Starting API server on {host}:{port}...")
    uvicorn.run("api.app:app", host=host, port=port, reload=reload)


@app.command("dashboard")
def run_dashboard(
    port: int = typer.Option(8501, help="Port for Streamlit dashboard"),
) -> None:
    """Start the Streamlit dashboard."""
    import subprocess

    typer.echo(f"Starting Streamlit dashboard on port {port}...")
    subprocess.run([
        sys.executable, "-m", "streamlit", "run",
        str(Path(__file__).parent / "dashboard" / "streamlit_app.py"),
        "--server.port", str(port),
        "--server.address", "0.0.0.0",
    ])


# =============================================================================
# Database Commands
# =============================================================================


@app.command("init-db")
def init_database() -> None:
    """Create any missing tables."""
    from core.db import init_db

    result = init_db()
    if result["tables_created"]:
        typer.secho(f"✓ Created tables: {', '.join(result['tables_created'])}", fg="green")
    else:
        typer.echo("All tables already exist")


@app.command("seed")
def seed() -> None:
    """Load demo users and, into an empty database, sample records."""
    from core.db import init_db
    from services.seed import DEMO_USERS, seed_demo_data

    init_db()
    with get_session() as session:
        summary = seed_demo_data(session)

    typer.secho("✓ Seed complete", fg="green")
    for name, count in summary.as_dict().items():
        typer.echo(f"  {name}: {count} created")
    typer.echo("Demo logins:")
    for _, email, password, role in DEMO_USERS:
        typer.echo(f"  {role.value:<5} {email} / {password}")


@app.command("create-user")
def create_user(
    name: str = typer.Option(..., prompt=True, help="Display name"),
    email: str = typer.Option(..., prompt=True, help="Login email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    role: Role = typer.Option(Role.AGENT, case_sensitive=False, help="ADMIN or AGENT"),
) -> None:
    """Add a user account."""
    from core.auth import hash_password
    from core.db import init_db
    from core.models import User

    if len(password) < 6:
        typer.secho("✗ Password must be at least 6 characters", fg="red")
        raise typer.Exit(1)

    init_db()
    with get_session() as session:
        if session.query(User.id).filter(User.email == email).first() is not None:
            typer.secho(f"✗ Email already in use: {email}", fg="red")
            raise typer.Exit(1)
        user = User(name=name, email=email, password_hash=hash_password(password), role=role.value)
        session.add(user)
        session.flush()
        user_id = user.id

    LOGGER.info("Created user %s (%s)", email, role.value)
    typer.secho(f"✓ Created {role.value} {email} ({user_id})", fg="green")


# =============================================================================
# Utility Commands
# =============================================================================


@app.command("info")
def show_info() -> None:
    """Show application configuration info."""
    from core.db import validate_database

    typer.echo("RE-CRM Configuration:")
    for key, value in SETTINGS.public_summary().items():
        typer.echo(f"  {key.replace('_', ' ').title()}: {value}")

    status = validate_database()
    typer.echo(f"  Database: {status['status']}")
    if status["tables_missing"]:
        typer.echo(f"  Missing Tables: {', '.join(status['tables_missing'])}")


if __name__ == "__main__":
    app()
