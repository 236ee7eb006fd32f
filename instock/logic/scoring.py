"""Weighted availability scoring for snapshot rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping

from instock.errors import VariantJoinWarning
from instock.ingest.models import CatalogVariant, TrackedSkuDefinition

PRODUCT_CLASS_WEIGHT = {
    "A": 4,
    "B": 3,
    "C": 2,
    "LE": 1,
}

SIZE_CLASS_WEIGHT = {
    "A": 3,
    "B": 1,
}

# The reference table carries no size class column; it is derived from size.
CORE_SIZES = frozenset({"YTH-MD", "YTH-LG", "YTH-XL", "SR-SM", "SR-MD", "SR-LG"})

SNAPSHOT_COLUMNS = (
    "snapshot_date",
    "snapshot_ts",
    "run_id",
    "sku",
    "product_name",
    "colorway",
    "size",
    "product_class",
    "size_class",
    "safety_stock",
    "variant_id",
    "inventory_item_id",
    "location_id",
    "available_qty",
    "balance_vs_safety",
    "product_class_weight",
    "size_class_weight",
    "total_weight",
    "is_tracked",
    "in_stock_v1",
    "weighted_in_stock_v1",
    "in_stock_v2",
    "weighted_in_stock_v2",
)


@dataclass(slots=True, frozen=True)
class SnapshotStamp:
    snapshot_date: str
    snapshot_ts: str
    run_id: str


@dataclass(slots=True, frozen=True)
class InStockScore:
    in_stock: bool
    weighted: int


@dataclass(slots=True, frozen=True)
class ScoreVariants:
    """Safety-aware (v1) and any-positive (v2) definitions of "in stock"."""

    v1: InStockScore
    v2: InStockScore


@dataclass(slots=True, frozen=True)
class SnapshotRow:
    snapshot_date: str
    snapshot_ts: str
    run_id: str
    sku: str
    product_name: str
    colorway: str
    size: str
    product_class: str
    size_class: str
    safety_stock: int
    variant_id: str
    inventory_item_id: str
    location_id: str
    available_qty: int
    balance_vs_safety: int
    product_class_weight: int
    size_class_weight: int
    total_weight: int
    is_tracked: bool
    scores: ScoreVariants

    def as_values(self) -> tuple:
        return (
            self.snapshot_date,
            self.snapshot_ts,
            self.run_id,
            self.sku,
            self.product_name,
            self.colorway,
            self.size,
            self.product_class,
            self.size_class,
            self.safety_stock,
            self.variant_id,
            self.inventory_item_id,
            self.location_id,
            self.available_qty,
            self.balance_vs_safety,
            self.product_class_weight,
            self.size_class_weight,
            self.total_weight,
            int(self.is_tracked),
            int(self.scores.v1.in_stock),
            self.scores.v1.weighted,
            int(self.scores.v2.in_stock),
            self.scores.v2.weighted,
        )

    def as_record(self) -> dict[str, object]:
        return dict(zip(SNAPSHOT_COLUMNS, self.as_values()))


def derive_size_class(size: str | None) -> str:
    token = (size or "").strip().upper()
    return "A" if token in CORE_SIZES else "B"


def product_class_weight(product_class: str | None) -> int:
    return PRODUCT_CLASS_WEIGHT.get((product_class or "").strip().upper(), 0)


def size_class_weight(size_class: str | None) -> int:
    return SIZE_CLASS_WEIGHT.get(size_class or "", 0)


def in_stock_safety_aware(available: int, safety_stock: int) -> bool:
    if safety_stock > 0:
        return available >= safety_stock
    return available > 0


def in_stock_any_positive(available: int) -> bool:
    return available > 0


def score_availability(available: int, safety_stock: int, total_weight: int) -> ScoreVariants:
    v1 = in_stock_safety_aware(available, safety_stock)
    v2 = in_stock_any_positive(available)
    return ScoreVariants(
        v1=InStockScore(in_stock=v1, weighted=total_weight if v1 else 0),
        v2=InStockScore(in_stock=v2, weighted=total_weight if v2 else 0),
    )


def score_variant(
    variant: CatalogVariant,
    definition: TrackedSkuDefinition | None,
    available: int,
    *,
    stamp: SnapshotStamp,
    location_id: str,
) -> SnapshotRow:
    if definition is None:
        colorway = size = product_class = size_class = ""
        safety_stock = 0
        product_weight = size_weight = 0
    else:
        colorway = definition.colorway
        size = definition.size
        product_class = definition.product_class
        size_class = derive_size_class(definition.size)
        safety_stock = definition.safety_stock
        product_weight = product_class_weight(product_class)
        size_weight = size_class_weight(size_class)
    total_weight = product_weight * size_weight
    return SnapshotRow(
        snapshot_date=stamp.snapshot_date,
        snapshot_ts=stamp.snapshot_ts,
        run_id=stamp.run_id,
        sku=variant.sku,
        product_name=variant.product_name,
        colorway=colorway,
        size=size,
        product_class=product_class,
        size_class=size_class,
        safety_stock=safety_stock,
        variant_id=variant.variant_id,
        inventory_item_id=variant.inventory_item_id,
        location_id=location_id,
        available_qty=available,
        balance_vs_safety=available - safety_stock,
        product_class_weight=product_weight,
        size_class_weight=size_weight,
        total_weight=total_weight,
        is_tracked=definition is not None,
        scores=score_availability(available, safety_stock, total_weight),
    )


def join_catalog(
    variants: Iterable[CatalogVariant],
    definitions: Mapping[str, TrackedSkuDefinition],
    warnings: list[VariantJoinWarning] | None = None,
) -> Iterator[tuple[CatalogVariant, TrackedSkuDefinition | None]]:
    """Pair each catalog variant with its reference entry, if any.

    Join misses in either direction are appended to ``warnings``; they never
    drop a catalog variant.
    """
    seen: set[str] = set()
    for variant in variants:
        definition = definitions.get(variant.sku)
        if definition is None and warnings is not None:
            warnings.append(VariantJoinWarning(variant.sku, "untracked_variant"))
        seen.add(variant.sku)
        yield variant, definition
    if warnings is not None:
        for sku in definitions:
            if sku not in seen:
                warnings.append(VariantJoinWarning(sku, "missing_from_catalog"))


def summarize_weights(rows: Iterable[SnapshotRow]) -> dict[str, int]:
    """Numerator and denominator pieces of the weighted in-stock rate."""
    totals = {"total_weight": 0, "weighted_in_stock_v1": 0, "weighted_in_stock_v2": 0}
    for row in rows:
        totals["total_weight"] += row.total_weight
        totals["weighted_in_stock_v1"] += row.scores.v1.weighted
        totals["weighted_in_stock_v2"] += row.scores.v2.weighted
    return totals
