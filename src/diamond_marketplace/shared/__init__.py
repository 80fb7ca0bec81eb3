"""Shared models used across the marketplace engine."""

from .models import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Addon,
    EtaEstimate,
    LineItem,
    MenuItem,
    Notification,
    Order,
    OrderStatus,
    PaymentMethod,
    Position,
    Restaurant,
    Snapshot,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Addon",
    "EtaEstimate",
    "LineItem",
    "MenuItem",
    "Notification",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    "Position",
    "Restaurant",
    "Snapshot",
]
