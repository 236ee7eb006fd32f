"""Error taxonomy for snapshot runs."""

from __future__ import annotations

from typing import Sequence


class SnapshotError(RuntimeError):
    pass


class AuthorizationError(SnapshotError):
    """Trigger secret missing or mismatched."""


class ConfigurationError(SnapshotError):
    """Required setting absent or reference table empty."""


class UpstreamCatalogError(SnapshotError):
    """A catalog page request failed; the run must not write anything."""


class UpstreamInventoryBatchError(SnapshotError):
    """An inventory batch lookup failed and was recovered as zero stock."""

    def __init__(self, message: str, inventory_item_ids: Sequence[str]) -> None:
        super().__init__(message)
        self.inventory_item_ids = list(inventory_item_ids)


class VariantJoinWarning(UserWarning):
    """Catalog variant without a reference entry, or the reverse."""

    def __init__(self, sku: str, kind: str) -> None:
        super().__init__(f"{kind}: {sku}")
        self.sku = sku
        self.kind = kind
