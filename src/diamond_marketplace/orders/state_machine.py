"""Order state machine.

Every status change requested by any role goes through OrderStateMachine,
which validates the edge against the transition table and then persists the
whole orders collection back to the record store.

Happy path::

    PENDING -> ACCEPTED -> PREPARING -> READY -> OUT_FOR_DELIVERY -> DELIVERED

``CANCELLED`` is reachable from ``PENDING`` only. ``DELIVERED`` and
``CANCELLED`` are terminal.

``ACCEPTED`` is used for two events: the merchant accepting a new order, and
a courier accepting a ``READY`` job. The two phases are told apart by
``Order.courier_id``; a courier-accepted order may only move on to
``OUT_FOR_DELIVERY``.
"""

import logging

from ..errors import (
    DuplicateOrderError,
    InvalidTransitionError,
    MarketplaceError,
    OrderNotFoundError,
)
from ..shared.models import Order, OrderStatus
from ..store.base import BaseRecordStore

logger = logging.getLogger(__name__)

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.PREPARING}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

COURIER_ACCEPTED_TRANSITIONS: frozenset[OrderStatus] = frozenset(
    {OrderStatus.OUT_FOR_DELIVERY}
)

MIN_RATING = 1
MAX_RATING = 5


def allowed_targets(order: Order) -> frozenset[OrderStatus]:
    """Return the statuses the order may move to next."""
    if order.status == OrderStatus.ACCEPTED and order.has_courier:
        return COURIER_ACCEPTED_TRANSITIONS
    return TRANSITIONS[order.status]


def can_transition(order: Order, target: OrderStatus) -> bool:
    """Check whether ``order`` may move to ``target``."""
    return target in allowed_targets(order)


def apply_transition(
    order: Order, target: OrderStatus, reason: str | None = None
) -> Order:
    """Return a copy of ``order`` moved to ``target``.

    Raises:
        InvalidTransitionError: if the edge is not in the transition table.

    """
    if not can_transition(order, target):
        if order.status.is_terminal:
            message = f"Order {order.id} is {order.status.value}; no further transitions are permitted"
        else:
            message = None
        raise InvalidTransitionError(order.id, order.status, target, message)

    updates: dict[str, object] = {"status": target}
    if target == OrderStatus.CANCELLED:
        updates["cancellation_reason"] = reason
    return order.model_copy(update=updates)


def apply_courier_assignment(order: Order, courier_id: str) -> Order:
    """Return a copy of a ``READY`` order accepted by ``courier_id``.

    Raises:
        InvalidTransitionError: if the order is not ``READY``.

    """
    if order.status != OrderStatus.READY:
        raise InvalidTransitionError(
            order.id,
            order.status,
            OrderStatus.ACCEPTED,
            f"Courier can only accept order {order.id} when READY (current: {order.status.value})",
        )
    return order.model_copy(
        update={"courier_id": courier_id, "status": OrderStatus.ACCEPTED}
    )


class OrderStateMachine:
    """Validates and persists order lifecycle changes."""

    def __init__(self, store: BaseRecordStore):
        """Create a state machine writing through ``store``."""
        self._store = store

    async def place_order(self, order: Order) -> Order:
        """Insert a new PENDING order into the orders collection.

        Payment sufficiency is checked by the caller before this is invoked.
        """
        if order.status != OrderStatus.PENDING:
            raise InvalidTransitionError(
                order.id,
                order.status,
                OrderStatus.PENDING,
                f"New order {order.id} must be PENDING (got {order.status.value})",
            )

        orders = await self._store.get_orders()
        if any(existing.id == order.id for existing in orders):
            raise DuplicateOrderError(order.id)

        orders.append(order)
        await self._store.save_orders(orders)
        logger.info(
            f"Placed order {order.id} at {order.restaurant_id} for {order.total:.2f}"
        )
        return order

    async def transition(
        self, order_id: str, target: OrderStatus, reason: str | None = None
    ) -> Order:
        """Move an order to ``target`` if the edge exists."""
        orders = await self._store.get_orders()
        index = self._index_of(orders, order_id)
        current = orders[index]

        updated = apply_transition(current, target, reason)
        orders[index] = updated
        await self._store.save_orders(orders)
        logger.info(
            f"Order {order_id}: {current.status.value} -> {updated.status.value}"
        )
        return updated

    async def assign_courier(self, order_id: str, courier_id: str) -> Order:
        """Record that ``courier_id`` accepted a READY order."""
        orders = await self._store.get_orders()
        index = self._index_of(orders, order_id)

        updated = apply_courier_assignment(orders[index], courier_id)
        orders[index] = updated
        await self._store.save_orders(orders)
        logger.info(f"Order {order_id}: courier {courier_id} accepted the job")
        return updated

    async def cancel(self, order_id: str, reason: str) -> Order:
        """Cancel a PENDING order, recording ``reason`` verbatim."""
        return await self.transition(order_id, OrderStatus.CANCELLED, reason)

    async def rate(self, order_id: str, rating: int) -> Order:
        """Record the customer's 1-5 courier rating on a DELIVERED order.

        Raises:
            ValueError: if ``rating`` is outside 1-5.
            MarketplaceError: if the order has not been delivered.

        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(
                f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
            )

        orders = await self._store.get_orders()
        index = self._index_of(orders, order_id)
        current = orders[index]
        if current.status != OrderStatus.DELIVERED:
            raise MarketplaceError(
                f"Order {order_id} is {current.status.value}; only delivered orders can be rated"
            )

        updated = current.model_copy(update={"courier_rating": rating})
        orders[index] = updated
        await self._store.save_orders(orders)
        logger.info(f"Order {order_id}: courier rated {rating}/{MAX_RATING}")
        return updated

    @staticmethod
    def _index_of(orders: list[Order], order_id: str) -> int:
        for index, order in enumerate(orders):
            if order.id == order_id:
                return index
        raise OrderNotFoundError(order_id)
