"""Shared domain models for the Diamond marketplace."""

import math
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    PREPARING = "PREPARING"
    READY = "READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions are permitted."""
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        """Whether an order in this status is eligible for live tracking."""
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Ordered: PENDING through OUT_FOR_DELIVERY.
ACTIVE_STATUSES = (
    OrderStatus.PENDING,
    OrderStatus.ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
)


class PaymentMethod(str, Enum):
    """Payment methods offered at checkout."""

    CARD = "CARD"
    WALLET = "WALLET"
    APPLE_PAY = "APPLE_PAY"
    CASH = "CASH"


class Addon(BaseModel):
    """Optional extra that can be selected with a menu item."""

    id: str
    name: str
    price: float = Field(ge=0)


class MenuItem(BaseModel):
    """A dish on a restaurant menu."""

    id: str = Field(description="Menu item ID")
    name: str = Field(description="Menu item name")
    description: str = Field(default="", description="Menu item description")
    price: float = Field(ge=0, description="Unit price")
    category: str = Field(default="Main", description="Menu section")
    addons: list[Addon] = Field(default_factory=list)
    is_available: bool = Field(default=True, description="Orderable right now")
    sales_count: int | None = Field(default=None, description="Running sales counter")


class Restaurant(BaseModel):
    """Restaurant with its menu and delivery terms."""

    id: str = Field(description="Restaurant ID")
    name: str = Field(description="Restaurant name")
    rating: float = Field(default=0.0, description="Average rating")
    delivery_time: str = Field(default="", description="Delivery window label")
    tags: list[str] = Field(default_factory=list)
    is_open: bool = True
    menu: list[MenuItem] = Field(default_factory=list)
    delivery_fee: float = Field(default=0.0, ge=0)
    min_order: float = Field(default=0.0, ge=0)
    promo_text: str | None = None
    promo_banners: list[str] = Field(default_factory=list)
    historical_delivery_minutes: float = Field(
        default=25.0,
        gt=0,
        description="Historical average delivery duration used for ETA estimation",
    )

    def get_item(self, item_id: str) -> MenuItem | None:
        """Return the menu item with the given id, if any."""
        for item in self.menu:
            if item.id == item_id:
                return item
        return None

    @property
    def available_items(self) -> list[MenuItem]:
        """Menu items customers may order."""
        return [item for item in self.menu if item.is_available]


class LineItem(BaseModel):
    """A single cart line captured on an order."""

    menu_item_id: str
    name: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0, description="Item price including add-ons")
    selected_addons: list[Addon] = Field(default_factory=list)

    @computed_field  # type: ignore[misc]
    @property
    def line_total(self) -> float:
        """Unit price multiplied by quantity."""
        return self.unit_price * self.quantity


class Order(BaseModel):
    """Customer order as persisted in the orders collection."""

    id: str
    customer_id: str
    restaurant_id: str
    courier_id: str | None = None
    items: list[LineItem]
    total: float = Field(ge=0)
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    delivery_address: str
    delivery_instructions: str | None = None
    payment_method: PaymentMethod | None = None
    loyalty_points_earned: int | None = None
    cancellation_reason: str | None = None
    courier_rating: int | None = Field(default=None, ge=1, le=5)

    @property
    def has_courier(self) -> bool:
        """Whether a courier has accepted this order."""
        return self.courier_id is not None


class Position(BaseModel):
    """A point on the simulated delivery map."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def distance_to(self, other: "Position") -> float:
        """Euclidean distance to another position."""
        return math.hypot(other.x - self.x, other.y - self.y)


class EtaEstimate(BaseModel):
    """Arrival estimate for the tracked order."""

    estimated_minutes: int = Field(ge=0)
    reasoning: str
    confidence_score: float = Field(ge=0, le=100)
    is_fallback: bool = False


NotificationIcon = Literal[
    "circle-check", "fire-burner", "bag-shopping", "motorcycle", "gem", "ban"
]


class Notification(BaseModel):
    """Transient user-facing notice raised by an order status change."""

    order_id: str
    status: OrderStatus
    title: str
    body: str
    icon: NotificationIcon
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Snapshot(BaseModel):
    """Full in-memory copy of all collections taken at one sync tick."""

    restaurants: list[Restaurant] = Field(default_factory=list)
    orders: list[Order] = Field(default_factory=list)
    favorites: list[str] = Field(default_factory=list)
    taken_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_order(self, order_id: str) -> Order | None:
        """Return the order with the given id, if present."""
        for order in self.orders:
            if order.id == order_id:
                return order
        return None

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        """Return the restaurant with the given id, if present."""
        for restaurant in self.restaurants:
            if restaurant.id == restaurant_id:
                return restaurant
        return None


RestaurantListAdapter: TypeAdapter[list[Restaurant]] = TypeAdapter(list[Restaurant])
OrderListAdapter: TypeAdapter[list[Order]] = TypeAdapter(list[Order])
FavoritesAdapter: TypeAdapter[list[str]] = TypeAdapter(list[str])
