"""Shopify Admin API ingestion: catalog variants and inventory levels."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import httpx

from instock.errors import UpstreamCatalogError, UpstreamInventoryBatchError
from instock.ingest.models import CatalogVariant, InventoryResolution
from instock.utils.rate_limit import RateLimiter
from instock.utils.retry import retry_async

logger = logging.getLogger(__name__)

DEFAULT_VARIANT_TITLE = "Default Title"
ACTIVE_VARIANTS_QUERY = "product_status:active"

VARIANTS_PAGE_QUERY = """
query ActiveVariants($first: Int!, $after: String, $query: String) {
  productVariants(first: $first, after: $after, query: $query) {
    nodes {
      id
      sku
      title
      product { title }
      inventoryItem { id }
    }
    pageInfo { hasNextPage endCursor }
  }
}
"""


class GraphQLError(RuntimeError):
    pass


@dataclass(slots=True)
class VariantPage:
    nodes: list[dict[str, Any]]
    has_next_page: bool
    end_cursor: str | None


class ShopifyClient:
    def __init__(
        self,
        shop_domain: str,
        admin_token: str,
        api_version: str,
        *,
        concurrency: int = 3,
        session: httpx.AsyncClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self.shop_domain = _bare_domain(shop_domain)
        self.api_version = api_version
        self._session = session or httpx.AsyncClient(timeout=30.0)
        self._headers = {
            "X-Shopify-Access-Token": admin_token,
            "Content-Type": "application/json",
        }
        self._semaphore = asyncio.Semaphore(concurrency)
        self._rate_limiter = rate_limiter or RateLimiter(rate=2.0)

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"

    async def close(self) -> None:
        await self._session.aclose()

    async def fetch_variant_page(self, *, first: int, after: str | None = None) -> VariantPage:
        data = await self._graphql(
            VARIANTS_PAGE_QUERY,
            {"first": first, "after": after, "query": ACTIVE_VARIANTS_QUERY},
        )
        connection = data["productVariants"]
        page_info = connection["pageInfo"]
        return VariantPage(
            nodes=list(connection.get("nodes") or []),
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    async def fetch_inventory_levels(
        self, inventory_item_ids: Sequence[str], location_id: str
    ) -> list[dict[str, Any]]:
        params = {
            "inventory_item_ids": ",".join(inventory_item_ids),
            "location_ids": location_id,
            "limit": 250,
        }
        response = await self._request("GET", f"{self.base_url}/inventory_levels.json", params=params)
        response.raise_for_status()
        return list(response.json().get("inventory_levels") or [])

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"{self.base_url}/graphql.json",
            json={"query": query, "variables": variables},
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("errors"):
            raise GraphQLError(f"Shopify GraphQL errors: {payload['errors']}")
        data = payload.get("data")
        if not data:
            raise GraphQLError("Shopify GraphQL response had no data")
        return data

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with self._semaphore:
            await self._rate_limiter.wait_for_host(self.shop_domain)
            return await retry_async(self._session.request)(method, url, headers=self._headers, **kwargs)


class CatalogFetcher:
    """Pages through every active variant; any failed page aborts the fetch."""

    def __init__(self, client: ShopifyClient, *, page_size: int = 250) -> None:
        self.client = client
        self.page_size = page_size

    async def fetch_all(self) -> list[CatalogVariant]:
        variants: list[CatalogVariant] = []
        cursor: str | None = None
        pages = 0
        while True:
            try:
                page = await self.client.fetch_variant_page(first=self.page_size, after=cursor)
            except (httpx.HTTPError, GraphQLError, AttributeError, KeyError, TypeError, ValueError) as exc:
                raise UpstreamCatalogError(f"Catalog page {pages + 1} failed: {exc}") from exc
            pages += 1
            logger.debug("Catalog page %s: %s nodes", pages, len(page.nodes))
            variants.extend(v for v in (parse_variant_node(node) for node in page.nodes) if v)
            if not page.has_next_page:
                break
            if not page.end_cursor:
                raise UpstreamCatalogError(f"Catalog page {pages} reported more pages without a cursor")
            cursor = page.end_cursor
        logger.info("Fetched %s catalog variants across %s pages", len(variants), pages)
        return variants


def parse_variant_node(node: dict[str, Any]) -> CatalogVariant | None:
    sku = (node.get("sku") or "").strip()
    if not sku:
        return None
    product = node.get("product") or {}
    inventory_item = node.get("inventoryItem") or {}
    return CatalogVariant(
        sku=sku,
        product_name=compose_product_name(product.get("title"), node.get("title")),
        variant_id=normalize_gid(node.get("id")),
        inventory_item_id=normalize_gid(inventory_item.get("id")),
    )


def compose_product_name(product_title: str | None, variant_title: str | None) -> str:
    product_title = (product_title or "").strip()
    variant_title = (variant_title or "").strip()
    if not variant_title or variant_title == DEFAULT_VARIANT_TITLE:
        return product_title
    if not product_title:
        return variant_title
    return f"{product_title} - {variant_title}"


def normalize_gid(value: Any) -> str:
    """gid://shopify/InventoryItem/123 -> 123"""
    if value is None:
        return ""
    return str(value).strip().rstrip("/").rsplit("/", 1)[-1]


class InventoryResolver:
    """Resolves available quantity per inventory item at one location.

    Failed batches resolve to zero stock instead of failing the run.
    """

    def __init__(self, client: ShopifyClient, *, batch_size: int = 50) -> None:
        self.client = client
        self.batch_size = batch_size

    async def resolve(self, location_id: str, inventory_item_ids: Iterable[str]) -> InventoryResolution:
        ids = list(dict.fromkeys(i for i in inventory_item_ids if i))
        resolution = InventoryResolution(levels={item_id: 0 for item_id in ids})
        batches = list(chunked(ids, self.batch_size))
        results = await asyncio.gather(*(self._resolve_batch(location_id, batch) for batch in batches))
        for levels, failure in results:
            resolution.levels.update(levels)
            if failure:
                resolution.failures.append(failure)
        logger.info(
            "Resolved inventory for %s items in %s batches (%s failed)",
            len(ids),
            len(batches),
            len(resolution.failures),
        )
        return resolution

    async def _resolve_batch(
        self, location_id: str, batch: list[str]
    ) -> tuple[dict[str, int], UpstreamInventoryBatchError | None]:
        try:
            raw_levels = await self.client.fetch_inventory_levels(batch, location_id)
            levels = parse_inventory_levels(raw_levels, batch, location_id)
        except (httpx.HTTPError, AttributeError, TypeError, ValueError) as exc:
            logger.warning("Inventory batch of %s items failed; defaulting to zero: %s", len(batch), exc)
            error = UpstreamInventoryBatchError(f"Inventory lookup failed: {exc}", batch)
            return {item_id: 0 for item_id in batch}, error
        return levels, None


def parse_inventory_levels(
    raw_levels: Iterable[dict[str, Any]], requested: Sequence[str], location_id: str
) -> dict[str, int]:
    levels = {item_id: 0 for item_id in requested}
    for level in raw_levels:
        if str(level.get("location_id")) != str(location_id):
            continue
        item_id = str(level.get("inventory_item_id"))
        if item_id not in levels:
            continue
        available = level.get("available")
        levels[item_id] = available if isinstance(available, int) and not isinstance(available, bool) else 0
    return levels


def chunked(items: Sequence[str], size: int) -> Iterable[list[str]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


def _bare_domain(domain: str) -> str:
    domain = domain.strip()
    for prefix in ("https://", "http://"):
        if domain.startswith(prefix):
            domain = domain[len(prefix) :]
    return domain.rstrip("/")
