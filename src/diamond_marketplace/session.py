"""Session facade tying the store, sync loop and role-facing operations together."""

import logging
from collections.abc import Callable, Sequence
from types import TracebackType

from pydantic import BaseModel

from .assistant import (
    DEFAULT_DIETARY_PREFERENCES,
    FoodRecommendation,
    MarketplaceAssistant,
    MenuSuggestion,
    SmartBundle,
)
from .catalog import default_restaurants
from .config import MarketplaceSettings
from .delivery import (
    DeliveryTelemetrySimulator,
    DeliveryTracker,
    EtaPipeline,
    EtaPredictor,
    FixedTrafficFeed,
    LLMEtaPredictor,
    TrafficFeed,
)
from .errors import MarketplaceError, RestaurantNotFoundError
from .notifications import Notifier
from .orders import CartItem, OrderStateMachine, Wallet, build_order
from .shared.models import (
    Order,
    OrderStatus,
    PaymentMethod,
    Restaurant,
    Snapshot,
)
from .store.base import BaseRecordStore
from .sync import SynchronizationLoop

logger = logging.getLogger(__name__)

COURIER_JOB_STATUSES = (OrderStatus.ACCEPTED, OrderStatus.OUT_FOR_DELIVERY)


class PlatformStats(BaseModel):
    """Admin overview across every restaurant."""

    order_count: int
    gross_volume: float
    active_count: int
    delivered_count: int
    cancelled_count: int
    restaurant_count: int


class RestaurantStats(BaseModel):
    """Merchant overview for one restaurant."""

    restaurant_id: str
    revenue: float
    order_count: int
    active_count: int


class MarketplaceSession:
    """One running marketplace engine.

    Owns the sync loop, the order state machine, the notifier and the
    delivery tracker. Every mutation runs inside a sync mutation cycle so the
    caller sees its own write in :attr:`snapshot` as soon as it returns.

    Example::

        async with connect_to_sqlite_store("diamond.db") as store:
            async with MarketplaceSession(store) as session:
                order = await session.checkout("r1", cart, "12 Gem Street")
    """

    def __init__(
        self,
        store: BaseRecordStore,
        settings: MarketplaceSettings | None = None,
        *,
        predictor: EtaPredictor | None = None,
        traffic: TrafficFeed | None = None,
        assistant: MarketplaceAssistant | None = None,
        seed_restaurants: Callable[[], list[Restaurant]] | None = default_restaurants,
    ):
        """Create a session over ``store``.

        Args:
            store: Record store holding restaurants, orders and favorites
            settings: Timers and demo identities, read from the environment by default
            predictor: ETA prediction collaborator, an LLM predictor by default
            traffic: Traffic descriptor source for ETA requests
            assistant: LLM recommendation and menu advice collaborator
            seed_restaurants: Catalog written to an empty store on start, or None to skip seeding

        """
        self.settings = settings or MarketplaceSettings()
        self.store = store
        self.wallet = Wallet(balance=self.settings.wallet_balance)

        self.loop = SynchronizationLoop(
            store,
            interval=self.settings.sync_interval,
            seed_restaurants=seed_restaurants,
        )
        self.orders = OrderStateMachine(store)
        self.notifier = Notifier(display_seconds=self.settings.notification_seconds)

        self.telemetry = DeliveryTelemetrySimulator(
            interval=self.settings.telemetry_interval,
            step_fraction=self.settings.telemetry_step_fraction,
        )
        self.eta = EtaPipeline(
            predictor or LLMEtaPredictor(),
            lambda: (self.telemetry.position, self.telemetry.destination),
            traffic=traffic or FixedTrafficFeed(self.settings.traffic),
            interval=self.settings.eta_interval,
        )
        self.tracker = DeliveryTracker(self.telemetry, self.eta)
        self.assistant = assistant or MarketplaceAssistant()

        self._unsubscribers: list[Callable[[], None]] = []

    @property
    def snapshot(self) -> Snapshot:
        """The latest published snapshot."""
        return self.loop.snapshot

    @property
    def is_syncing(self) -> bool:
        """Whether a local write is in flight."""
        return self.loop.is_syncing

    async def start(self) -> Snapshot:
        """Wire subscribers and perform the initial load."""
        if not self._unsubscribers:
            self._unsubscribers = [
                self.loop.subscribe(self.notifier.on_snapshot),
                self.loop.subscribe(self.tracker.on_snapshot),
            ]
        snapshot = await self.loop.start()
        logger.info(
            f"Session started with {len(snapshot.restaurants)} restaurants "
            f"and {len(snapshot.orders)} orders"
        )
        return snapshot

    async def close(self) -> None:
        """Stop every timer owned by the session."""
        await self.loop.stop()
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        await self.tracker.close()
        await self.notifier.close()

    async def __aenter__(self) -> "MarketplaceSession":
        """Start the session."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the session."""
        await self.close()

    # Order lifecycle

    async def place_order(self, order: Order) -> Order:
        """Insert an already-built PENDING order."""
        async with self.loop.mutation():
            return await self.orders.place_order(order)

    async def checkout(
        self,
        restaurant_id: str,
        cart: list[CartItem],
        delivery_address: str,
        payment_method: PaymentMethod = PaymentMethod.WALLET,
        *,
        delivery_instructions: str | None = None,
        customer_id: str | None = None,
    ) -> Order:
        """Build an order from ``cart``, charge the wallet and place it.

        Nothing is created or charged when any checkout check fails. Wallet
        payments are charged before the order is written and refunded if the
        write fails.

        Raises:
            RestaurantNotFoundError: if ``restaurant_id`` is unknown.
            CheckoutError: if the cart cannot be ordered or paid for.

        """
        async with self.loop.mutation():
            restaurants = await self.store.get_restaurants()
            restaurant = _find_restaurant(restaurants, restaurant_id)

            order = build_order(
                restaurant,
                cart,
                customer_id=customer_id or self.settings.customer_id,
                delivery_address=delivery_address,
                payment_method=payment_method,
                delivery_instructions=delivery_instructions,
                wallet=self.wallet,
            )

            charged = payment_method == PaymentMethod.WALLET
            if charged:
                self.wallet.charge(order.total)
            try:
                placed = await self.orders.place_order(order)
            except Exception:
                if charged:
                    self.wallet.refund(order.total)
                    logger.warning(f"Refunded {order.total:.2f} for unplaced order {order.id}")
                raise

            self.wallet.earn(placed.loyalty_points_earned or 0)
            return placed

    async def update_status(
        self, order_id: str, target: OrderStatus, reason: str | None = None
    ) -> Order:
        """Move an order along the lifecycle."""
        async with self.loop.mutation():
            return await self.orders.transition(order_id, target, reason)

    async def accept_job(self, order_id: str, courier_id: str | None = None) -> Order:
        """Courier accepts a READY job; defaults to the demo courier."""
        async with self.loop.mutation():
            return await self.orders.assign_courier(
                order_id, courier_id or self.settings.courier_id
            )

    async def cancel_order(self, order_id: str, reason: str) -> Order:
        """Cancel a PENDING order, keeping ``reason`` verbatim."""
        async with self.loop.mutation():
            return await self.orders.cancel(order_id, reason)

    async def rate_order(self, order_id: str, rating: int) -> Order:
        """Customer rates the courier of a delivered order from 1 to 5."""
        async with self.loop.mutation():
            return await self.orders.rate(order_id, rating)

    # Catalog

    async def toggle_menu_item(self, restaurant_id: str, item_id: str) -> Restaurant:
        """Flip the availability of one menu item."""
        async with self.loop.mutation():
            restaurants = await self.store.get_restaurants()
            restaurant = _find_restaurant(restaurants, restaurant_id)
            item = restaurant.get_item(item_id)
            if item is None:
                raise MarketplaceError(
                    f"Restaurant {restaurant_id} has no menu item {item_id}"
                )
            item.is_available = not item.is_available
            await self.store.save_restaurants(restaurants)
            logger.info(
                f"{restaurant.name}: {item.name} is now "
                f"{'available' if item.is_available else 'unavailable'}"
            )
            return restaurant

    async def update_banners(
        self, restaurant_id: str, banners: Sequence[str]
    ) -> Restaurant:
        """Replace the promo banners of a restaurant."""
        async with self.loop.mutation():
            restaurants = await self.store.get_restaurants()
            restaurant = _find_restaurant(restaurants, restaurant_id)
            restaurant.promo_banners = [banner for banner in banners if banner]
            await self.store.save_restaurants(restaurants)
            return restaurant

    async def toggle_favorite(self, restaurant_id: str) -> bool:
        """Add or remove a favorite restaurant. Returns whether it is now a favorite."""
        async with self.loop.mutation():
            favorites = await self.store.get_favorites()
            if restaurant_id in favorites:
                favorites = [f for f in favorites if f != restaurant_id]
                is_favorite = False
            else:
                favorites.append(restaurant_id)
                is_favorite = True
            await self.store.save_favorites(favorites)
            return is_favorite

    # Suggestions

    async def recommend_food(
        self, mood: str, dietary_preferences: str = DEFAULT_DIETARY_PREFERENCES
    ) -> list[FoodRecommendation]:
        """Customer view: food ideas for a mood, empty when the LLM is unavailable."""
        return await self.assistant.recommend_food(mood, dietary_preferences)

    async def suggest_bundles(self, restaurant_id: str) -> list[SmartBundle]:
        """Merchant view: meal deal ideas from the current menu."""
        restaurant = _find_restaurant(self.snapshot.restaurants, restaurant_id)
        return await self.assistant.suggest_bundles(restaurant)

    async def analyze_menu(self, restaurant_id: str) -> list[MenuSuggestion]:
        """Merchant view: pricing and naming advice for every menu item."""
        restaurant = _find_restaurant(self.snapshot.restaurants, restaurant_id)
        return await self.assistant.analyze_menu(restaurant.menu)

    # Queries

    def orders_for_restaurant(self, restaurant_id: str) -> list[Order]:
        """Merchant view: every order placed at ``restaurant_id``."""
        return [o for o in self.snapshot.orders if o.restaurant_id == restaurant_id]

    def orders_for_customer(self, customer_id: str | None = None) -> list[Order]:
        """Customer view: order history, defaulting to the demo customer."""
        customer_id = customer_id or self.settings.customer_id
        return [o for o in self.snapshot.orders if o.customer_id == customer_id]

    def pending_jobs(self) -> list[Order]:
        """Courier view: READY orders waiting for a courier."""
        return [o for o in self.snapshot.orders if o.status == OrderStatus.READY]

    def current_job(self, courier_id: str | None = None) -> Order | None:
        """Courier view: the job ``courier_id`` has accepted and not yet delivered."""
        courier_id = courier_id or self.settings.courier_id
        for order in self.snapshot.orders:
            if order.courier_id == courier_id and order.status in COURIER_JOB_STATUSES:
                return order
        return None

    def active_orders(self) -> list[Order]:
        """Orders that are neither delivered nor cancelled."""
        return [o for o in self.snapshot.orders if o.status.is_active]

    def platform_stats(self) -> PlatformStats:
        """Admin view: totals over every order."""
        orders = self.snapshot.orders
        return PlatformStats(
            order_count=len(orders),
            gross_volume=round(
                sum(o.total for o in orders if o.status != OrderStatus.CANCELLED), 2
            ),
            active_count=sum(1 for o in orders if o.status.is_active),
            delivered_count=sum(1 for o in orders if o.status == OrderStatus.DELIVERED),
            cancelled_count=sum(1 for o in orders if o.status == OrderStatus.CANCELLED),
            restaurant_count=len(self.snapshot.restaurants),
        )

    def restaurant_stats(self, restaurant_id: str) -> RestaurantStats:
        """Merchant view: revenue and workload of one restaurant."""
        orders = self.orders_for_restaurant(restaurant_id)
        return RestaurantStats(
            restaurant_id=restaurant_id,
            revenue=round(
                sum(o.total for o in orders if o.status != OrderStatus.CANCELLED), 2
            ),
            order_count=len(orders),
            active_count=sum(1 for o in orders if o.status.is_active),
        )


def _find_restaurant(restaurants: list[Restaurant], restaurant_id: str) -> Restaurant:
    for restaurant in restaurants:
        if restaurant.id == restaurant_id:
            return restaurant
    raise RestaurantNotFoundError(restaurant_id)
