"""Owner of the tracked-order lifecycle.

The tracker listens to published snapshots, picks the single order eligible
for live tracking and keeps the telemetry simulator and ETA pipeline running
exactly while that order is out for delivery.
"""

import asyncio
import logging

from ..shared.models import EtaEstimate, Order, OrderStatus, Position, Snapshot
from .eta import EtaPipeline
from .telemetry import DeliveryTelemetrySimulator

logger = logging.getLogger(__name__)


def select_tracked_order(orders: list[Order], customer_id: str | None = None) -> Order | None:
    """Return the first order in the active band, optionally for one customer."""
    for order in orders:
        if customer_id is not None and order.customer_id != customer_id:
            continue
        if order.status.is_active:
            return order
    return None


class DeliveryTracker:
    """Starts and stops live delivery timers as the tracked order changes."""

    def __init__(
        self,
        telemetry: DeliveryTelemetrySimulator,
        eta: EtaPipeline,
        *,
        customer_id: str | None = None,
    ):
        """Create a tracker driving ``telemetry`` and ``eta``.

        Args:
            telemetry: Courier position simulator
            eta: ETA estimation pipeline reading from ``telemetry``
            customer_id: Only track this customer's orders, if given

        """
        self.telemetry = telemetry
        self.eta = eta
        self.customer_id = customer_id
        self.tracked: Order | None = None
        self._lock = asyncio.Lock()

    @property
    def tracked_order_id(self) -> str | None:
        """Id of the order currently tracked."""
        return self.tracked.id if self.tracked else None

    @property
    def is_live(self) -> bool:
        """Whether the delivery timers are running."""
        return self.telemetry.is_running or self.eta.is_running

    @property
    def courier_position(self) -> Position | None:
        """Courier position while the tracked order is out for delivery."""
        if self.tracked and self.tracked.status == OrderStatus.OUT_FOR_DELIVERY:
            return self.telemetry.position
        return None

    @property
    def eta_estimate(self) -> EtaEstimate | None:
        """Latest ETA estimate for the tracked order."""
        return self.eta.latest

    async def on_snapshot(self, previous: Snapshot, current: Snapshot) -> None:
        """Snapshot subscriber: re-evaluate the tracked order."""
        await self.update(current)

    async def update(self, snapshot: Snapshot) -> None:
        """Reconcile the delivery timers with ``snapshot``.

        Updates are applied one at a time in the order they arrive.
        """
        async with self._lock:
            await self._reconcile(snapshot)

    async def _reconcile(self, snapshot: Snapshot) -> None:
        order = select_tracked_order(snapshot.orders, self.customer_id)
        previous_id = self.tracked_order_id
        self.tracked = order

        if order is None or order.id != previous_id:
            await self._halt()
            self.telemetry.reset(order.id if order else None)
            self.eta.clear()
            if order is not None:
                restaurant = snapshot.get_restaurant(order.restaurant_id)
                if restaurant is not None:
                    self.eta.historical_minutes = restaurant.historical_delivery_minutes
                logger.info(f"Tracking order {order.id}")

        if order is not None and order.status == OrderStatus.OUT_FOR_DELIVERY:
            if not self.telemetry.is_running and not self.telemetry.arrived:
                self.telemetry.start()
            if not self.eta.is_running:
                self.eta.start(order.id)
        else:
            await self._halt()

    async def close(self) -> None:
        """Stop both timers."""
        async with self._lock:
            await self._halt()

    async def _halt(self) -> None:
        await self.telemetry.stop()
        await self.eta.stop()
