"""Tabular store backed by SQL tables.

The pipeline only needs three operations from its stores: read a whole table
as header plus rows, read one column, and append rows. Tables are reflected at
first use so the reference table's column layout is whatever the database
currently holds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy import MetaData, Table, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, NoSuchTableError

from instock.errors import ConfigurationError

logger = logging.getLogger(__name__)

CLAIMS_TABLE = "snapshot_runs"


@dataclass(slots=True, frozen=True)
class RunClaim:
    snapshot_date: str
    run_id: str
    claimed_at: str


class ClaimConflict(Exception):
    pass


class SqlTabularStore:
    def __init__(self, engine: Engine, *, claims_table: str = CLAIMS_TABLE) -> None:
        self.engine = engine
        self.claims_table = claims_table
        self._metadata = MetaData()
        self._tables: dict[str, Table] = {}

    def table(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            try:
                table = Table(name, self._metadata, autoload_with=self.engine)
            except NoSuchTableError as exc:
                raise ConfigurationError(f"Table {name!r} does not exist") from exc
            self._tables[name] = table
        return table

    def get_range(self, name: str) -> list[list[Any]]:
        """Column names as the first row, followed by every data row."""
        table = self.table(name)
        query = select(table)
        if table.primary_key.columns:
            query = query.order_by(*table.primary_key.columns)
        with self.engine.connect() as conn:
            rows = [list(row) for row in conn.execute(query)]
        return [[column.name for column in table.columns], *rows]

    def get_column(self, name: str, column: str) -> list[Any]:
        table = self.table(name)
        if column not in table.c:
            raise ConfigurationError(f"Table {name!r} has no column {column!r}")
        with self.engine.connect() as conn:
            return list(conn.execute(select(table.c[column])).scalars())

    def append_rows(
        self,
        name: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        *,
        claim: RunClaim | None = None,
    ) -> bool:
        """Append rows in a single transaction.

        With ``claim``, a claim row keyed by (table, snapshot date) is inserted
        in the same transaction. Returns False, writing nothing, when another
        run already holds the claim.
        """
        table = self.table(name)
        records = [dict(zip(columns, row)) for row in rows]
        try:
            with self.engine.begin() as conn:
                if claim is not None:
                    self._insert_claim(conn, name, claim)
                if records:
                    conn.execute(table.insert(), records)
        except ClaimConflict:
            logger.warning("Snapshot for %s already claimed in %s", claim.snapshot_date, name)
            return False
        logger.info("Appended %s rows to %s", len(records), name)
        return True

    def _insert_claim(self, conn, name: str, claim: RunClaim) -> None:
        claims = self.table(self.claims_table)
        try:
            conn.execute(
                claims.insert(),
                {
                    "snapshot_table": name,
                    "snapshot_date": claim.snapshot_date,
                    "run_id": claim.run_id,
                    "claimed_at": claim.claimed_at,
                },
            )
        except IntegrityError as exc:
            raise ClaimConflict(claim.snapshot_date) from exc
