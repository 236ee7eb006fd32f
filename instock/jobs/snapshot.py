"""Daily inventory snapshot job."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from dataclasses import asdict, dataclass, field

import pendulum

from instock.config import Settings
from instock.db.session import create_engine_from_url
from instock.db.store import SqlTabularStore
from instock.errors import SnapshotError, VariantJoinWarning
from instock.ingest.models import CatalogVariant
from instock.ingest.reference import load_tracked_skus
from instock.ingest.shopify import CatalogFetcher, InventoryResolver, ShopifyClient
from instock.logic.scoring import join_catalog, score_variant, summarize_weights
from instock.logic.snapshot import SnapshotGuard, SnapshotWriter, make_stamp
from instock.utils.dates import DEFAULT_TZ, format_date, today_in_tz

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunError:
    sku: str
    stage: str
    detail: str


@dataclass(slots=True)
class RunSummary:
    status: str
    snapshot_date: str
    run_id: str | None = None
    rows_inserted: int = 0
    tracked_sku_count: int = 0
    reference_sku_count: int = 0
    untracked_variant_count: int = 0
    errors_count: int = 0
    errors: list[RunError] = field(default_factory=list)
    reason: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, object]:
        return asdict(self)


async def run_snapshot(
    settings: Settings,
    *,
    store: SqlTabularStore | None = None,
    client: ShopifyClient | None = None,
    now: pendulum.DateTime | None = None,
) -> RunSummary:
    """Guard, load, fetch, resolve, score and write one daily snapshot.

    Raises ConfigurationError or UpstreamCatalogError before anything is
    written; every other failure is recorded on the summary.
    """
    settings.require()
    stamp = make_stamp(settings.timezone, now=now)
    store = store or SqlTabularStore(create_engine_from_url(settings.database_url))
    logger.debug("Snapshot settings: %s", settings.redacted())

    if SnapshotGuard(store, settings.snapshot_table).already_ran(stamp.snapshot_date):
        logger.info("Snapshot for %s already exists; skipping", stamp.snapshot_date)
        return RunSummary(
            status="skipped",
            snapshot_date=stamp.snapshot_date,
            reason="Snapshot already exists for today",
        )

    definitions = load_tracked_skus(store.get_range(settings.reference_table))
    errors: list[RunError] = []

    owns_client = client is None
    if client is None:
        client = ShopifyClient(
            settings.shop_domain,
            settings.admin_token,
            settings.api_version,
            concurrency=settings.inventory_concurrency,
        )
    try:
        catalog = await CatalogFetcher(client, page_size=settings.catalog_page_size).fetch_all()
        variants = _with_inventory_items(catalog, errors)
        resolution = await InventoryResolver(client, batch_size=settings.inventory_batch_size).resolve(
            settings.location_id, (v.inventory_item_id for v in variants)
        )
    finally:
        if owns_client:
            await client.close()

    for failure in resolution.failures:
        failed_ids = set(failure.inventory_item_ids)
        errors.extend(
            RunError(sku=v.sku, stage="inventory_levels", detail=str(failure))
            for v in variants
            if v.inventory_item_id in failed_ids
        )

    warnings: list[VariantJoinWarning] = []
    rows = [
        score_variant(
            variant,
            definition,
            resolution.available(variant.inventory_item_id),
            stamp=stamp,
            location_id=settings.location_id,
        )
        for variant, definition in join_catalog(variants, definitions, warnings)
    ]
    for warning in warnings:
        logger.debug("Join warning: %s", warning)

    result = SnapshotWriter(store, settings.snapshot_table).write(stamp, rows)
    if rows and not result.written:
        return RunSummary(
            status="skipped",
            snapshot_date=stamp.snapshot_date,
            run_id=stamp.run_id,
            reason="Snapshot already claimed by a concurrent run",
        )

    totals = summarize_weights(rows)
    logger.info(
        "Snapshot %s: %s rows, weighted in-stock v1=%s v2=%s of %s",
        stamp.run_id,
        result.rows,
        totals["weighted_in_stock_v1"],
        totals["weighted_in_stock_v2"],
        totals["total_weight"],
    )
    return RunSummary(
        status="ok",
        snapshot_date=stamp.snapshot_date,
        run_id=stamp.run_id,
        rows_inserted=result.rows,
        tracked_sku_count=sum(1 for row in rows if row.is_tracked),
        reference_sku_count=len(definitions),
        untracked_variant_count=sum(1 for w in warnings if w.kind == "untracked_variant"),
        errors_count=len(errors),
        errors=errors[: settings.error_cap],
    )


def error_summary(exc: Exception, tz_name: str | None = None) -> RunSummary:
    try:
        today = today_in_tz(tz_name)
    except ValueError:
        # the configured zone may itself be what failed the run
        today = today_in_tz(DEFAULT_TZ)
    return RunSummary(
        status="error",
        snapshot_date=format_date(today),
        message=str(exc) or exc.__class__.__name__,
    )


def _with_inventory_items(catalog: list[CatalogVariant], errors: list[RunError]) -> list[CatalogVariant]:
    variants: list[CatalogVariant] = []
    for variant in catalog:
        if not variant.inventory_item_id:
            errors.append(
                RunError(
                    sku=variant.sku,
                    stage="inventory_item_lookup",
                    detail=f"Variant {variant.variant_id or '?'} has no inventory item",
                )
            )
            continue
        variants.append(variant)
    return variants


async def main() -> int:
    try:
        settings = Settings.from_env()
        summary = await run_snapshot(settings)
    except SnapshotError as exc:
        logger.error("Snapshot run failed: %s", exc)
        summary = error_summary(exc)
    except Exception as exc:
        logger.exception("Snapshot run crashed")
        summary = error_summary(exc)
    print(json.dumps(summary.to_dict(), indent=2))
    return 1 if summary.status == "error" else 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main()))
