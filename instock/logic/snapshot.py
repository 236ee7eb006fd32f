"""Once-per-day snapshot guard and append-only writer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

import pendulum

from instock.db.store import RunClaim, SqlTabularStore
from instock.logic.scoring import SNAPSHOT_COLUMNS, SnapshotRow, SnapshotStamp
from instock.utils.dates import epoch_micros, format_date, format_timestamp, now_in_tz

logger = logging.getLogger(__name__)

DATE_COLUMN = "snapshot_date"


def make_stamp(tz_name: str, *, now: pendulum.DateTime | None = None) -> SnapshotStamp:
    """Date, timestamp and run id for one run, all in the reporting time zone."""
    current = (now or now_in_tz(tz_name)).in_timezone(tz_name)
    snapshot_date = format_date(current.date())
    return SnapshotStamp(
        snapshot_date=snapshot_date,
        snapshot_ts=format_timestamp(current),
        run_id=f"{snapshot_date}-{epoch_micros(current)}",
    )


class SnapshotGuard:
    def __init__(self, store: SqlTabularStore, table: str) -> None:
        self.store = store
        self.table = table

    def already_ran(self, snapshot_date: str) -> bool:
        existing = {str(value).strip() for value in self.store.get_column(self.table, DATE_COLUMN) if value}
        return snapshot_date in existing


@dataclass(slots=True)
class WriteResult:
    written: bool
    rows: int


class SnapshotWriter:
    def __init__(self, store: SqlTabularStore, table: str) -> None:
        self.store = store
        self.table = table

    def write(self, stamp: SnapshotStamp, rows: Sequence[SnapshotRow]) -> WriteResult:
        if not rows:
            logger.info("No snapshot rows for %s; nothing appended", stamp.snapshot_date)
            return WriteResult(written=False, rows=0)
        stray = [row.sku for row in rows if row.run_id != stamp.run_id or row.snapshot_date != stamp.snapshot_date]
        if stray:
            raise ValueError(f"Rows from another run cannot be appended: {stray[:5]}")
        claim = RunClaim(snapshot_date=stamp.snapshot_date, run_id=stamp.run_id, claimed_at=stamp.snapshot_ts)
        written = self.store.append_rows(
            self.table,
            SNAPSHOT_COLUMNS,
            [row.as_values() for row in rows],
            claim=claim,
        )
        return WriteResult(written=written, rows=len(rows) if written else 0)
