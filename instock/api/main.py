"""FastAPI trigger for the daily inventory snapshot."""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from instock.config import Settings, trigger_secret_from_env
from instock.db.store import SqlTabularStore
from instock.errors import AuthorizationError, SnapshotError, UpstreamCatalogError
from instock.jobs.snapshot import error_summary, run_snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_PATH = "/api/snapshot/inventory"

app = FastAPI(title="Inventory Snapshot API")


class RunErrorModel(BaseModel):
    sku: str
    stage: str
    detail: str


class SnapshotResponse(BaseModel):
    status: str
    snapshot_date: str
    run_id: str | None = None
    rows_inserted: int = 0
    tracked_sku_count: int = 0
    reference_sku_count: int = 0
    untracked_variant_count: int = 0
    errors_count: int = 0
    errors: list[RunErrorModel] = []
    reason: str | None = None
    message: str | None = None


class ErrorResponse(BaseModel):
    error: str


def get_trigger_secret() -> str | None:
    return trigger_secret_from_env()


def get_settings() -> Settings:
    return Settings.from_env()


def get_store() -> SqlTabularStore | None:
    """Overridden in tests; None lets the run build its own store."""
    return None


def require_trigger_secret(provided: str | None, expected: str | None) -> None:
    if not provided or not expected:
        raise AuthorizationError("Missing trigger secret")
    if not secrets.compare_digest(provided.encode(), expected.encode()):
        raise AuthorizationError("Trigger secret mismatch")


def authorize_trigger(
    x_cron_secret: str | None = Header(default=None, alias="x-cron-secret"),
    expected: str | None = Depends(get_trigger_secret),
) -> None:
    require_trigger_secret(x_cron_secret, expected)


@app.exception_handler(AuthorizationError)
async def authorization_failed(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.warning("Rejected snapshot trigger from %s: %s", request.client.host if request.client else "?", exc)
    return JSONResponse(ErrorResponse(error="Unauthorized").model_dump(), status_code=401)


@app.exception_handler(SnapshotError)
async def snapshot_failed(request: Request, exc: SnapshotError) -> JSONResponse:
    status_code = 502 if isinstance(exc, UpstreamCatalogError) else 500
    logger.error("Snapshot run failed: %s", exc)
    body = SnapshotResponse(**error_summary(exc).to_dict())
    return JSONResponse(body.model_dump(), status_code=status_code)


@app.exception_handler(Exception)
async def snapshot_crashed(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Snapshot run crashed: %s", exc, exc_info=exc)
    body = SnapshotResponse(**error_summary(exc).to_dict())
    return JSONResponse(body.model_dump(), status_code=500)


@app.post(SNAPSHOT_PATH, response_model=SnapshotResponse, dependencies=[Depends(authorize_trigger)])
async def trigger_snapshot(
    settings: Settings = Depends(get_settings),
    store: SqlTabularStore | None = Depends(get_store),
) -> SnapshotResponse:
    summary = await run_snapshot(settings, store=store)
    return SnapshotResponse(**summary.to_dict())


@app.get(SNAPSHOT_PATH, response_model=ErrorResponse, status_code=405)
async def reject_get() -> JSONResponse:
    return JSONResponse(
        ErrorResponse(error="Method not allowed").model_dump(),
        status_code=405,
        headers={"Allow": "POST"},
    )
