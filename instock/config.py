"""Run configuration loaded from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from dotenv import load_dotenv

from instock.errors import ConfigurationError
from instock.utils.dates import DEFAULT_TZ

REQUIRED_ENV = {
    "database_url": "DATABASE_URL",
    "reference_table": "REFERENCE_TABLE",
    "snapshot_table": "SNAPSHOT_TABLE",
    "shop_domain": "SHOPIFY_STORE_DOMAIN",
    "admin_token": "SHOPIFY_ADMIN_TOKEN",
    "api_version": "SHOPIFY_API_VERSION",
    "location_id": "SHOPIFY_LOCATION_ID",
    "trigger_secret": "CRON_SECRET",
}


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str | None = None
    reference_table: str | None = None
    snapshot_table: str | None = None
    shop_domain: str | None = None
    admin_token: str | None = None
    api_version: str | None = None
    location_id: str | None = None
    trigger_secret: str | None = None
    timezone: str = DEFAULT_TZ
    catalog_page_size: int = 250
    inventory_batch_size: int = 50
    inventory_concurrency: int = 3
    error_cap: int = 25

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        values: dict[str, object] = {
            name: os.environ.get(env_name) or None for name, env_name in REQUIRED_ENV.items()
        }
        values["timezone"] = os.environ.get("TIMEZONE", DEFAULT_TZ)
        values["catalog_page_size"] = _int_env("CATALOG_PAGE_SIZE", 250)
        values["inventory_batch_size"] = _int_env("INVENTORY_BATCH_SIZE", 50)
        values["inventory_concurrency"] = _int_env("INVENTORY_CONCURRENCY", 3)
        values["error_cap"] = _int_env("ERROR_CAP", 25)
        return cls(**values)

    def missing(self) -> list[str]:
        return [env_name for name, env_name in REQUIRED_ENV.items() if not getattr(self, name)]

    def require(self) -> "Settings":
        missing = self.missing()
        if missing:
            raise ConfigurationError(f"Missing env var: {', '.join(missing)}")
        return self

    def redacted(self) -> dict[str, object]:
        hidden = {"database_url", "admin_token", "trigger_secret"}
        return {
            f.name: ("***" if f.name in hidden and getattr(self, f.name) else getattr(self, f.name))
            for f in fields(self)
        }


def trigger_secret_from_env() -> str | None:
    """Shared trigger secret alone, so callers can be authorized before the rest parses."""
    load_dotenv()
    return os.environ.get(REQUIRED_ENV["trigger_secret"]) or None


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value
