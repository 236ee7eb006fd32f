"""Datetime helpers pinned to the reporting time zone."""

from __future__ import annotations

import os
from datetime import date

import pendulum

DEFAULT_TZ = "America/New_York"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz(tz_name: str | None = None) -> pendulum.DateTime:
    tz = pendulum.timezone(tz_name or timezone_name())
    return pendulum.now(tz)


def today_in_tz(tz_name: str | None = None) -> date:
    return now_in_tz(tz_name).date()


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def format_timestamp(value: pendulum.DateTime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def epoch_micros(value: pendulum.DateTime) -> int:
    return int(value.timestamp() * 1_000_000)
