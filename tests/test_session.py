"""End-to-end tests for the marketplace session facade."""

import asyncio
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from diamond_marketplace import MarketplaceSession
from diamond_marketplace.errors import (
    InsufficientFundsError,
    InvalidTransitionError,
    MarketplaceError,
    RestaurantNotFoundError,
    StoreUnavailableError,
)
from diamond_marketplace.orders import CartItem
from diamond_marketplace.shared.models import OrderStatus, PaymentMethod


@pytest_asyncio.fixture
async def session(memory_store, settings, static_predictor):
    """A running session over an empty in-memory store."""
    async with MarketplaceSession(
        memory_store, settings, predictor=static_predictor
    ) as session:
        yield session


def _wings_cart(session: MarketplaceSession, quantity: int = 2) -> list[CartItem]:
    wings = session.snapshot.get_restaurant("r1").get_item("m2")
    return [CartItem(menu_item=wings, quantity=quantity)]


class TestSessionLifecycle:
    """Tests covering start, seeding and teardown."""

    @pytest.mark.asyncio
    async def test_start_seeds_catalog(self, session):
        """An empty store is seeded with the demo catalog."""
        assert [r.id for r in session.snapshot.restaurants] == ["r1", "r2"]
        assert not session.is_syncing

    @pytest.mark.asyncio
    async def test_close_stops_every_timer(self, memory_store, settings, static_predictor):
        """Leaving the context manager stops sync, telemetry and ETA."""
        async with MarketplaceSession(
            memory_store, settings, predictor=static_predictor
        ) as session:
            order = await session.checkout("r1", _wings_cart(session), "12 Gem Street")
            for status in (OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.READY):
                await session.update_status(order.id, status)
            await session.accept_job(order.id)
            await session.update_status(order.id, OrderStatus.OUT_FOR_DELIVERY)
            assert session.tracker.is_live

        assert not session.loop.is_running
        assert not session.tracker.is_live
        assert session.notifier.current is None


class TestCheckout:
    """Tests for the customer checkout flow."""

    @pytest.mark.asyncio
    async def test_checkout_places_order_and_charges_wallet(self, session):
        """Wings x2 (36) plus 1.50 fee is charged and visible immediately."""
        order = await session.checkout("r1", _wings_cart(session), "12 Gem Street")

        assert order.total == 37.5
        assert order.status == OrderStatus.PENDING
        assert session.wallet.balance == 212.5
        assert session.wallet.diamond_points == 3
        assert session.snapshot.get_order(order.id) is not None
        assert session.orders_for_customer() == [session.snapshot.get_order(order.id)]

    @pytest.mark.asyncio
    async def test_insufficient_funds_creates_nothing(self, session, memory_store):
        """A short wallet blocks the order and leaves the store untouched."""
        session.wallet.balance = 10
        with pytest.raises(InsufficientFundsError):
            await session.checkout("r1", _wings_cart(session), "12 Gem Street")

        assert await memory_store.get_orders() == []
        assert session.wallet.balance == 10
        assert not session.is_syncing

    @pytest.mark.asyncio
    async def test_card_payment_keeps_wallet(self, session):
        """Card payments do not touch the wallet balance but still earn points."""
        await session.checkout(
            "r1", _wings_cart(session, 3), "12 Gem Street", PaymentMethod.CARD
        )
        assert session.wallet.balance == 250
        assert session.wallet.diamond_points == 5

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, session):
        """Checking out from an unknown restaurant fails."""
        with pytest.raises(RestaurantNotFoundError):
            await session.checkout("r99", _wings_cart(session), "12 Gem Street")


class TestOrderFlow:
    """Tests for role entry points and notifications."""

    @pytest.mark.asyncio
    async def test_full_lifecycle_with_notifications(self, session):
        """Every status change raises one notification and ends DELIVERED."""
        titles = []
        session.notifier.add_listener(lambda n: titles.append(n.title))

        order = await session.checkout("r1", _wings_cart(session), "12 Gem Street")
        await session.update_status(order.id, OrderStatus.ACCEPTED)
        await session.update_status(order.id, OrderStatus.PREPARING)
        await session.update_status(order.id, OrderStatus.READY)

        assert [o.id for o in session.pending_jobs()] == [order.id]
        assert session.current_job() is None

        await session.accept_job(order.id)
        assert session.current_job().id == order.id
        assert session.pending_jobs() == []

        await session.update_status(order.id, OrderStatus.OUT_FOR_DELIVERY)
        assert session.tracker.tracked_order_id == order.id
        await asyncio.sleep(0.1)
        assert session.tracker.eta_estimate is not None
        assert session.tracker.courier_position is not None

        delivered = await session.update_status(order.id, OrderStatus.DELIVERED)

        assert delivered.courier_id == "driver-1"
        assert titles == [
            "Order Accepted",
            "Kitchen Active",
            "Order Ready",
            "Order Accepted",
            "Out for Delivery",
            "Order Delivered",
        ]
        assert not session.tracker.is_live
        assert session.active_orders() == []

        await session.rate_order(order.id, 5)
        assert session.snapshot.get_order(order.id).courier_rating == 5

    @pytest.mark.asyncio
    async def test_cancel_with_reason(self, session):
        """Merchants can cancel PENDING orders with a reason."""
        order = await session.checkout("r1", _wings_cart(session), "12 Gem Street")
        cancelled = await session.cancel_order(order.id, "Kitchen closed early")

        assert cancelled.cancellation_reason == "Kitchen closed early"
        assert session.notifier.current.title == "Order Cancelled"

    @pytest.mark.asyncio
    async def test_shortcut_to_preparing_is_rejected(self, session):
        """PENDING cannot jump straight to PREPARING."""
        order = await session.checkout("r1", _wings_cart(session), "12 Gem Street")
        with pytest.raises(InvalidTransitionError):
            await session.update_status(order.id, OrderStatus.PREPARING)
        assert session.snapshot.get_order(order.id).status == OrderStatus.PENDING
        assert not session.is_syncing

    @pytest.mark.asyncio
    async def test_stats(self, session):
        """Admin and merchant stats reflect the snapshot."""
        first = await session.checkout("r1", _wings_cart(session), "12 Gem Street")
        second = await session.checkout("r1", _wings_cart(session, 1), "12 Gem Street")
        await session.cancel_order(second.id, "Duplicate")

        platform = session.platform_stats()
        assert platform.order_count == 2
        assert platform.gross_volume == first.total
        assert platform.active_count == 1
        assert platform.cancelled_count == 1
        assert platform.restaurant_count == 2

        merchant = session.restaurant_stats("r1")
        assert merchant.revenue == first.total
        assert merchant.order_count == 2
        assert session.restaurant_stats("r2").order_count == 0
        assert len(session.orders_for_restaurant("r1")) == 2


class TestConcurrentMutations:
    """Tests for overlapping entry points against a shared SQLite store."""

    @pytest.mark.asyncio
    async def test_concurrent_checkouts_respect_wallet(
        self, sqlite_store, settings, static_predictor
    ):
        """Only one of two overlapping checkouts fits a 50 balance, and only it is stored."""
        settings = settings.model_copy(update={"wallet_balance": 50.0})
        async with MarketplaceSession(
            sqlite_store, settings, predictor=static_predictor
        ) as session:
            cart = _wings_cart(session)
            results = await asyncio.gather(
                session.checkout("r1", cart, "12 Gem Street"),
                session.checkout("r1", cart, "12 Gem Street"),
                return_exceptions=True,
            )

            placed = [r for r in results if not isinstance(r, BaseException)]
            failed = [r for r in results if isinstance(r, BaseException)]
            assert len(placed) == 1
            assert len(failed) == 1
            assert isinstance(failed[0], InsufficientFundsError)

            stored = await sqlite_store.get_orders()
            assert [o.id for o in stored] == [placed[0].id]
            assert session.wallet.balance == 12.5
            assert [o.id for o in session.snapshot.orders] == [placed[0].id]

    @pytest.mark.asyncio
    async def test_concurrent_transitions_keep_both_writes(
        self, sqlite_store, settings, static_predictor
    ):
        """Accepting two orders at once persists both transitions."""
        async with MarketplaceSession(
            sqlite_store, settings, predictor=static_predictor
        ) as session:
            cart = _wings_cart(session)
            first = await session.checkout("r1", cart, "12 Gem Street", PaymentMethod.CARD)
            second = await session.checkout("r1", cart, "12 Gem Street", PaymentMethod.CARD)

            await asyncio.gather(
                session.update_status(first.id, OrderStatus.ACCEPTED),
                session.update_status(second.id, OrderStatus.ACCEPTED),
                session.toggle_favorite("r1"),
                session.toggle_favorite("r2"),
            )

            stored = {o.id: o.status for o in await sqlite_store.get_orders()}
            assert stored == {
                first.id: OrderStatus.ACCEPTED,
                second.id: OrderStatus.ACCEPTED,
            }
            assert sorted(await sqlite_store.get_favorites()) == ["r1", "r2"]

    @pytest.mark.asyncio
    async def test_failed_write_refunds_wallet(self, session, memory_store):
        """A checkout whose order write fails leaves the balance untouched."""
        memory_store.save_orders = AsyncMock(
            side_effect=StoreUnavailableError("disk full")
        )

        with pytest.raises(StoreUnavailableError):
            await session.checkout("r1", _wings_cart(session), "12 Gem Street")

        assert session.wallet.balance == 250
        assert session.wallet.diamond_points == 0
        assert not session.is_syncing


class TestCatalogEntryPoints:
    """Tests for merchant catalog edits and customer favorites."""

    @pytest.mark.asyncio
    async def test_toggle_menu_item(self, session):
        """Switching an item off is visible in the snapshot."""
        await session.toggle_menu_item("r1", "m2")
        assert not session.snapshot.get_restaurant("r1").get_item("m2").is_available

        await session.toggle_menu_item("r1", "m2")
        assert session.snapshot.get_restaurant("r1").get_item("m2").is_available

    @pytest.mark.asyncio
    async def test_toggle_unknown_menu_item(self, session):
        """Unknown items are reported."""
        with pytest.raises(MarketplaceError):
            await session.toggle_menu_item("r1", "m404")

    @pytest.mark.asyncio
    async def test_update_banners(self, session):
        """Banners are replaced and blanks dropped."""
        await session.update_banners("r2", ["https://img/a.jpg", "", "https://img/b.jpg"])
        assert session.snapshot.get_restaurant("r2").promo_banners == [
            "https://img/a.jpg",
            "https://img/b.jpg",
        ]

    @pytest.mark.asyncio
    async def test_toggle_favorite(self, session):
        """Favorites toggle on and off."""
        assert await session.toggle_favorite("r2") is True
        assert session.snapshot.favorites == ["r2"]
        assert await session.toggle_favorite("r2") is False
        assert session.snapshot.favorites == []


class TestSuggestions:
    """Tests for the LLM suggestion entry points."""

    @pytest.mark.asyncio
    async def test_menu_advice_uses_snapshot_menu(self, session):
        """Merchant advice is requested for the restaurant's current menu."""
        assistant = AsyncMock()
        assistant.analyze_menu.return_value = []
        session.assistant = assistant

        assert await session.analyze_menu("r2") == []
        sent = assistant.analyze_menu.call_args.args[0]
        assert sent == session.snapshot.get_restaurant("r2").menu

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, session):
        """Bundles for an unknown restaurant are an error, not an empty list."""
        with pytest.raises(RestaurantNotFoundError):
            await session.suggest_bundles("r99")

    @pytest.mark.asyncio
    async def test_recommendations_without_provider(self, session, monkeypatch):
        """With no API key the customer simply gets no recommendations."""
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert await session.recommend_food("adventurous") == []
