"""Top-level package for the RE-CRM application."""
from __future__ import annotations

__version__ = "1.0.0"

__all__ = [
    "api",
    "core",
    "dashboard",
    "domain",
    "services",
]
