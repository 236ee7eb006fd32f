"""Database migration helpers."""

from __future__ import annotations

import logging
import pathlib
import sys
from typing import Iterable

from dotenv import load_dotenv
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from instock.db.session import create_engine_from_env

logger = logging.getLogger(__name__)

SCHEMA_PATH = pathlib.Path(__file__).with_name("schema.sql")


def run_migrations(engine: Engine, schema_sql: str | None = None) -> int:
    """Apply schema.sql to the database and return the statement count."""
    statements = list(_load_statements(schema_sql if schema_sql is not None else SCHEMA_PATH.read_text()))
    with engine.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))
    logger.info("Applied %s schema statements", len(statements))
    return len(statements)


def _load_statements(sql: str) -> Iterable[str]:
    buffer: list[str] = []
    for line in sql.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("--"):
            continue
        buffer.append(line)
        if stripped.endswith(";"):
            yield "\n".join(buffer)
            buffer.clear()
    if buffer:
        yield "\n".join(buffer)


def main() -> None:
    load_dotenv()
    engine = create_engine_from_env()
    try:
        run_migrations(engine)
    except SQLAlchemyError as exc:
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
