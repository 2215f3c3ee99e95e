"""Infrastructure services: photo storage and demo data."""
from __future__ import annotations

from .seed import SeedSummary, seed_demo_data
from .storage import IncomingFile, PhotoStorage

__all__ = [
    "IncomingFile",
    "PhotoStorage",
    "SeedSummary",
    "seed_demo_data",
]
