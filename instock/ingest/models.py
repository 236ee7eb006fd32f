"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field

from instock.errors import UpstreamInventoryBatchError


@dataclass(slots=True, frozen=True)
class CatalogVariant:
    sku: str
    product_name: str
    variant_id: str
    inventory_item_id: str


@dataclass(slots=True, frozen=True)
class TrackedSkuDefinition:
    sku: str
    colorway: str
    size: str
    product_class: str
    safety_stock: int


@dataclass(slots=True)
class InventoryResolution:
    levels: dict[str, int] = field(default_factory=dict)
    failures: list[UpstreamInventoryBatchError] = field(default_factory=list)

    def available(self, inventory_item_id: str) -> int:
        return self.levels.get(inventory_item_id, 0)
