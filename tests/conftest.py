import json

import httpx
import pytest
import respx
from sqlalchemy import Column, Integer, MetaData, SmallInteger, Table, Text, create_engine
from sqlalchemy.pool import StaticPool

from instock.config import Settings
from instock.db.store import SqlTabularStore
from instock.ingest.shopify import ShopifyClient
from instock.utils.rate_limit import RateLimiter

metadata = MetaData()

tracked_skus = Table(
    "tracked_skus",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("style", Text),
    Column("colorway", Text),
    Column("size", Text),
    Column("class", Text),
    Column("safety_stock", Text),
    Column("sku", Text),
)

inventory_snapshots = Table(
    "inventory_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("snapshot_date", Text, nullable=False),
    Column("snapshot_ts", Text, nullable=False),
    Column("run_id", Text, nullable=False),
    Column("sku", Text, nullable=False),
    Column("product_name", Text),
    Column("colorway", Text),
    Column("size", Text),
    Column("product_class", Text),
    Column("size_class", Text),
    Column("safety_stock", Integer, nullable=False),
    Column("variant_id", Text),
    Column("inventory_item_id", Text),
    Column("location_id", Text),
    Column("available_qty", Integer, nullable=False),
    Column("balance_vs_safety", Integer, nullable=False),
    Column("product_class_weight", Integer, nullable=False),
    Column("size_class_weight", Integer, nullable=False),
    Column("total_weight", Integer, nullable=False),
    Column("is_tracked", SmallInteger, nullable=False),
    Column("in_stock_v1", SmallInteger, nullable=False),
    Column("weighted_in_stock_v1", Integer, nullable=False),
    Column("in_stock_v2", SmallInteger, nullable=False),
    Column("weighted_in_stock_v2", Integer, nullable=False),
)

snapshot_runs = Table(
    "snapshot_runs",
    metadata,
    Column("snapshot_table", Text, primary_key=True),
    Column("snapshot_date", Text, primary_key=True),
    Column("run_id", Text, nullable=False),
    Column("claimed_at", Text, nullable=False),
)

SHOP_DOMAIN = "test-shop.myshopify.com"
API_VERSION = "2024-10"
LOCATION_ID = "777"
GRAPHQL_URL = f"https://{SHOP_DOMAIN}/admin/api/{API_VERSION}/graphql.json"
INVENTORY_URL = f"https://{SHOP_DOMAIN}/admin/api/{API_VERSION}/inventory_levels.json"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def store(engine):
    return SqlTabularStore(engine)


@pytest.fixture()
def settings():
    return Settings(
        database_url="sqlite://",
        reference_table="tracked_skus",
        snapshot_table="inventory_snapshots",
        shop_domain=SHOP_DOMAIN,
        admin_token="shpat_test",
        api_version=API_VERSION,
        location_id=LOCATION_ID,
        trigger_secret="s3cret",
        timezone="America/New_York",
        inventory_batch_size=2,
        inventory_concurrency=2,
    )


@pytest.fixture()
def seed_reference(engine):
    def seed(*rows):
        with engine.begin() as conn:
            conn.execute(tracked_skus.insert(), list(rows))

    return seed


def variant_node(sku, variant_id, item_id, *, title="Default Title", product="Team Hoodie"):
    return {
        "id": f"gid://shopify/ProductVariant/{variant_id}",
        "sku": sku,
        "title": title,
        "product": {"title": product},
        "inventoryItem": {"id": f"gid://shopify/InventoryItem/{item_id}"} if item_id else None,
    }


class ShopifyStub:
    """respx routes serving catalog pages and inventory levels."""

    def __init__(self, router: respx.MockRouter) -> None:
        self.router = router
        self.catalog_route = None
        self.inventory_route = None

    def catalog(self, *pages, fail_at: int | None = None, status_code: int = 500):
        def handler(request: httpx.Request) -> httpx.Response:
            after = json.loads(request.content)["variables"]["after"]
            index = 0 if after is None else int(after.rsplit("-", 1)[1])
            if index == fail_at:
                return httpx.Response(status_code, json={"errors": "Internal error"})
            has_next = index + 1 < len(pages)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "productVariants": {
                            "nodes": pages[index],
                            "pageInfo": {
                                "hasNextPage": has_next,
                                "endCursor": f"cursor-{index + 1}" if has_next else None,
                            },
                        }
                    }
                },
            )

        self.catalog_route = self.router.post(GRAPHQL_URL).mock(side_effect=handler)
        return self.catalog_route

    def inventory(self, stock, *, fail_ids=(), location_id=LOCATION_ID):
        def handler(request: httpx.Request) -> httpx.Response:
            ids = request.url.params["inventory_item_ids"].split(",")
            if any(item_id in fail_ids for item_id in ids):
                return httpx.Response(503, json={"errors": "Service unavailable"})
            levels = [
                {"inventory_item_id": int(item_id), "location_id": int(location_id), "available": stock[item_id]}
                for item_id in ids
                if item_id in stock
            ]
            return httpx.Response(200, json={"inventory_levels": levels})

        self.inventory_route = self.router.get(INVENTORY_URL).mock(side_effect=handler)
        return self.inventory_route

    def client(self, *, concurrency: int = 2) -> ShopifyClient:
        return ShopifyClient(
            SHOP_DOMAIN,
            "shpat_test",
            API_VERSION,
            concurrency=concurrency,
            session=httpx.AsyncClient(),
            rate_limiter=RateLimiter(rate=0),
        )


@pytest.fixture()
def shopify():
    with respx.mock(assert_all_called=False) as router:
        yield ShopifyStub(router)


@pytest.fixture()
def make_node():
    return variant_node
