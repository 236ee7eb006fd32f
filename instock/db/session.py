"""Database engine helpers."""

from __future__ import annotations

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/instock"


def create_engine_from_url(url: str) -> Engine:
    return create_engine(url, pool_pre_ping=True, future=True)


def create_engine_from_env() -> Engine:
    """Create an engine using the DATABASE_URL environment variable."""
    return create_engine_from_url(os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL))
