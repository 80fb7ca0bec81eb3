"""Test configuration and fixtures for the marketplace engine."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from diamond_marketplace.catalog import default_restaurants
from diamond_marketplace.config import MarketplaceSettings
from diamond_marketplace.delivery import EtaPrediction, EtaPredictor, EtaRequest
from diamond_marketplace.shared.models import (
    LineItem,
    Order,
    OrderStatus,
    Restaurant,
)
from diamond_marketplace.store import (
    InMemoryRecordStore,
    SQLiteRecordStore,
    connect_to_sqlite_store,
)

REPO_ROOT = Path(__file__).resolve().parent.parent


class StaticPredictor(EtaPredictor):
    """Predictor returning a fixed payload and recording requests."""

    def __init__(self, payload=None):
        """Initialize with the payload to return."""
        self.payload = payload or EtaPrediction(
            estimated_minutes=12, reasoning="Clear roads.", confidence_score=88
        )
        self.requests: list[EtaRequest] = []

    async def predict(self, request: EtaRequest):
        """Record the request and return the payload."""
        self.requests.append(request)
        return self.payload


def make_order(
    order_id: str = "DIAMOND-TEST01",
    status: OrderStatus = OrderStatus.PENDING,
    restaurant_id: str = "r1",
    customer_id: str = "user-1",
    courier_id: str | None = None,
    total: float = 41.5,
) -> Order:
    """Build a minimal order for tests."""
    return Order(
        id=order_id,
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        courier_id=courier_id,
        items=[
            LineItem(
                menu_item_id="m2", name="Gilded Wings", quantity=2, unit_price=20
            )
        ],
        total=total,
        status=status,
        delivery_address="12 Gem Street",
    )


@pytest.fixture
def restaurants() -> list[Restaurant]:
    """The built-in demo catalog."""
    return default_restaurants()


@pytest.fixture
def settings() -> MarketplaceSettings:
    """Settings with short timers for fast tests."""
    return MarketplaceSettings(
        db_path=":memory:",
        sync_interval=0.05,
        telemetry_interval=0.01,
        eta_interval=0.05,
        notification_seconds=0.05,
        telemetry_step_fraction=0.5,
        courier_id="driver-1",
        customer_id="user-1",
        wallet_balance=250.0,
        traffic="Moderate",
    )


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    """An empty in-memory record store."""
    return InMemoryRecordStore()


@pytest_asyncio.fixture
async def seeded_store(restaurants: list[Restaurant]) -> InMemoryRecordStore:
    """An in-memory record store holding the demo catalog."""
    store = InMemoryRecordStore()
    await store.save_restaurants(restaurants)
    return store


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> AsyncGenerator[SQLiteRecordStore]:
    """A SQLite record store in a temporary directory."""
    async with connect_to_sqlite_store(str(tmp_path / "diamond.db")) as store:
        yield store


@pytest.fixture
def order_factory():
    """Factory building minimal orders."""
    return make_order


@pytest.fixture
def static_predictor() -> StaticPredictor:
    """A predictor returning a valid fixed estimate."""
    return StaticPredictor()


@pytest.fixture
def restaurants_dir() -> Path:
    """The sample restaurant YAML directory shipped with the repo."""
    return REPO_ROOT / "data" / "restaurants"
