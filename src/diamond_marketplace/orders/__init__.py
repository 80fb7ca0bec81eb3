"""Order lifecycle: checkout and the status state machine."""

from .checkout import CartItem, Wallet, build_order, generate_order_id
from .state_machine import (
    TRANSITIONS,
    OrderStateMachine,
    allowed_targets,
    can_transition,
)

__all__ = [
    "TRANSITIONS",
    "CartItem",
    "OrderStateMachine",
    "Wallet",
    "allowed_targets",
    "build_order",
    "can_transition",
    "generate_order_id",
]
