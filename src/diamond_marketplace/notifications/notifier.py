"""Change detection between snapshots and transient user notifications."""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import NamedTuple

from ..shared.models import Notification, NotificationIcon, OrderStatus, Snapshot

logger = logging.getLogger(__name__)


class NotificationTemplate(NamedTuple):
    """Static payload shown when an order reaches a status."""

    title: str
    body: str
    icon: NotificationIcon


NOTIFICATION_TABLE: dict[OrderStatus, NotificationTemplate] = {
    OrderStatus.ACCEPTED: NotificationTemplate(
        "Order Accepted", "Your order has been confirmed.", "circle-check"
    ),
    OrderStatus.PREPARING: NotificationTemplate(
        "Kitchen Active", "The chef is preparing your meal.", "fire-burner"
    ),
    OrderStatus.READY: NotificationTemplate(
        "Order Ready", "Your order is packed and waiting for a courier.", "bag-shopping"
    ),
    OrderStatus.OUT_FOR_DELIVERY: NotificationTemplate(
        "Out for Delivery", "Your courier is on the way.", "motorcycle"
    ),
    OrderStatus.DELIVERED: NotificationTemplate(
        "Order Delivered", "Enjoy your meal!", "gem"
    ),
    OrderStatus.CANCELLED: NotificationTemplate(
        "Order Cancelled", "Your order has been cancelled.", "ban"
    ),
}


def detect_status_changes(previous: Snapshot, current: Snapshot) -> list[Notification]:
    """Return one notification per known order whose status changed.

    Orders missing from ``previous`` are new and never notify. Results follow
    the iteration order of ``current.orders``.
    """
    previous_status = {order.id: order.status for order in previous.orders}
    notifications: list[Notification] = []

    for order in current.orders:
        before = previous_status.get(order.id)
        if before is None or before == order.status:
            continue
        template = NOTIFICATION_TABLE.get(order.status)
        if template is None:
            continue
        notifications.append(
            Notification(
                order_id=order.id,
                status=order.status,
                title=template.title,
                body=template.body,
                icon=template.icon,
            )
        )

    return notifications


NotificationListener = Callable[[Notification], None]


class Notifier:
    """Shows one notification at a time and dismisses it after a fixed window.

    When several notifications arrive in one snapshot, each is emitted in
    order and the last one stays on screen.
    """

    def __init__(self, display_seconds: float = 4.0, history_size: int = 50):
        """Initialize the notifier.

        Args:
            display_seconds: Auto-dismiss window
            history_size: Number of recent notifications kept in :attr:`history`

        """
        self._display_seconds = display_seconds
        self._current: Notification | None = None
        self._dismiss_task: asyncio.Task[None] | None = None
        self._listeners: list[NotificationListener] = []
        self.history: deque[Notification] = deque(maxlen=history_size)

    @property
    def current(self) -> Notification | None:
        """The notification on screen, if any."""
        return self._current

    def add_listener(self, listener: NotificationListener) -> None:
        """Call ``listener`` with every notification that is shown."""
        self._listeners.append(listener)

    def on_snapshot(self, previous: Snapshot, current: Snapshot) -> list[Notification]:
        """Snapshot subscriber: detect status changes and show them."""
        notifications = detect_status_changes(previous, current)
        for notification in notifications:
            self.show(notification)
        return notifications

    def show(self, notification: Notification) -> None:
        """Replace the current notification and restart the dismiss timer."""
        self._cancel_dismiss()
        self._current = notification
        self.history.append(notification)
        logger.info(
            f"{notification.title}: order {notification.order_id} is {notification.status.value}"
        )
        for listener in list(self._listeners):
            listener(notification)
        self._dismiss_task = asyncio.get_running_loop().create_task(
            self._dismiss_later(notification), name="notification-dismiss"
        )

    def dismiss(self) -> None:
        """Clear the current notification immediately."""
        self._cancel_dismiss()
        self._current = None

    async def close(self) -> None:
        """Cancel any pending dismiss timer."""
        task, self._dismiss_task = self._dismiss_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._current = None

    async def _dismiss_later(self, notification: Notification) -> None:
        await asyncio.sleep(self._display_seconds)
        if self._current is notification:
            self._current = None
            self._dismiss_task = None

    def _cancel_dismiss(self) -> None:
        if self._dismiss_task is not None:
            self._dismiss_task.cancel()
            self._dismiss_task = None
