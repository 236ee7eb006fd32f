"""Tracked-SKU reference table loading.

The reference table is maintained by hand and its columns have been inserted,
removed and reordered over time. Each logical field is therefore looked up by
normalized header name first and by a fixed column position second, so tables
authored before headers existed still load.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from instock.errors import ConfigurationError
from instock.ingest.models import TrackedSkuDefinition

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_INVALID_RE = re.compile(r"[^a-z0-9_]")


@dataclass(slots=True, frozen=True)
class ReferenceField:
    name: str
    synonyms: tuple[str, ...]
    fallback_index: int | None


FIELDS: tuple[ReferenceField, ...] = (
    ReferenceField("sku", ("sku",), 17),
    ReferenceField("colorway", ("colorway",), 3),
    ReferenceField("size", ("size",), 4),
    ReferenceField("class", ("class", "product_class"), 12),
    ReferenceField("safety_stock", ("safety_stock", "safety"), 14),
)


def normalize_header(value: Any) -> str:
    token = _WHITESPACE_RE.sub("_", _cell_text(value).lower())
    return _INVALID_RE.sub("", token)


def build_header_index(header_row: Sequence[Any]) -> dict[str, int]:
    index: dict[str, int] = {}
    for position, cell in enumerate(header_row):
        key = normalize_header(cell)
        if key:
            index[key] = position
    return index


def resolve_columns(header_index: Mapping[str, int]) -> dict[str, int | None]:
    """Map each logical field to a column position, or None when absent."""
    columns: dict[str, int | None] = {}
    for field in FIELDS:
        position = next((header_index[s] for s in field.synonyms if s in header_index), None)
        if position is None:
            position = field.fallback_index
            logger.debug("Column %r not found by header; using fallback %s", field.name, position)
        columns[field.name] = position
    return columns


def parse_safety_stock(value: Any) -> int:
    text = _cell_text(value)
    if not text:
        return 0
    try:
        number = Decimal(text)
    except InvalidOperation:
        return 0
    if not number.is_finite() or number <= 0:
        return 0
    return int(number)


def load_tracked_skus(values: Sequence[Sequence[Any]]) -> dict[str, TrackedSkuDefinition]:
    if len(values) < 2:
        raise ConfigurationError("Reference table has no rows to process")
    columns = resolve_columns(build_header_index(values[0]))
    definitions: dict[str, TrackedSkuDefinition] = {}
    for row in values[1:]:
        sku = _cell_text(_cell(row, columns["sku"]))
        if not sku:
            continue
        if sku in definitions:
            logger.info("Duplicate reference SKU %s; keeping the last row", sku)
        definitions[sku] = TrackedSkuDefinition(
            sku=sku,
            colorway=_cell_text(_cell(row, columns["colorway"])),
            size=_cell_text(_cell(row, columns["size"])),
            product_class=_cell_text(_cell(row, columns["class"])).upper(),
            safety_stock=parse_safety_stock(_cell(row, columns["safety_stock"])),
        )
    logger.info("Loaded %s tracked SKUs", len(definitions))
    return definitions


def _cell(row: Sequence[Any], position: int | None) -> Any:
    if position is None or position >= len(row):
        return None
    return row[position]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()
