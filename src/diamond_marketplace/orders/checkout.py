"""Customer checkout: turns a cart into a PENDING order.

All checks here are caller-side preconditions of order placement. They run
before the state machine is invoked, so a failure never leaves a partially
created order behind.
"""

import math
import random
import string
from collections.abc import Iterable

from pydantic import BaseModel, Field

from ..errors import (
    EmptyCartError,
    InsufficientFundsError,
    ItemUnavailableError,
    RestaurantClosedError,
)
from ..shared.models import (
    Addon,
    LineItem,
    MenuItem,
    Order,
    OrderStatus,
    PaymentMethod,
    Restaurant,
)

ORDER_ID_PREFIX = "DIAMOND"
ORDER_ID_ALPHABET = string.ascii_uppercase + string.digits
LOYALTY_POINTS_RATE = 0.1


class CartItem(BaseModel):
    """A menu item in the customer's cart."""

    menu_item: MenuItem
    quantity: int = Field(default=1, ge=1)
    selected_addons: list[Addon] = Field(default_factory=list)

    @property
    def unit_price(self) -> float:
        """Menu price plus the price of every selected add-on."""
        return self.menu_item.price + sum(addon.price for addon in self.selected_addons)

    def to_line_item(self) -> LineItem:
        """Freeze the cart entry into an order line."""
        return LineItem(
            menu_item_id=self.menu_item.id,
            name=self.menu_item.name,
            quantity=self.quantity,
            unit_price=self.unit_price,
            selected_addons=list(self.selected_addons),
        )


class Wallet(BaseModel):
    """Customer's stored balance and loyalty points."""

    balance: float = Field(default=250.0, ge=0)
    diamond_points: int = Field(default=0, ge=0)

    def ensure_covers(self, amount: float) -> None:
        """Raise InsufficientFundsError if ``amount`` exceeds the balance."""
        if self.balance < amount:
            raise InsufficientFundsError(self.balance, amount)

    def charge(self, amount: float) -> None:
        """Deduct ``amount`` from the balance."""
        self.ensure_covers(amount)
        self.balance = round(self.balance - amount, 2)

    def refund(self, amount: float) -> None:
        """Return a charged ``amount`` to the balance."""
        self.balance = round(self.balance + amount, 2)

    def earn(self, points: int) -> None:
        """Credit loyalty points."""
        self.diamond_points += points


def generate_order_id(rng: random.Random | None = None) -> str:
    """Generate a human-readable order token such as ``DIAMOND-4K9QZT``."""
    rng = rng or random.Random()
    suffix = "".join(rng.choices(ORDER_ID_ALPHABET, k=6))
    return f"{ORDER_ID_PREFIX}-{suffix}"


def cart_subtotal(cart: Iterable[CartItem]) -> float:
    """Sum of unit price times quantity over the cart."""
    return sum(item.unit_price * item.quantity for item in cart)


def loyalty_points_for(subtotal: float) -> int:
    """Points earned for a cart subtotal."""
    return math.floor(subtotal * LOYALTY_POINTS_RATE)


def build_order(
    restaurant: Restaurant,
    cart: list[CartItem],
    *,
    customer_id: str,
    delivery_address: str,
    payment_method: PaymentMethod = PaymentMethod.WALLET,
    delivery_instructions: str | None = None,
    wallet: Wallet | None = None,
    order_id: str | None = None,
) -> Order:
    """Validate a cart and build the PENDING order for it.

    The total is computed once here, as the cart subtotal plus the
    restaurant's delivery fee, and is never recomputed afterwards.

    Raises:
        EmptyCartError: if the cart has no items.
        RestaurantClosedError: if the restaurant is not open.
        ItemUnavailableError: if any cart item is switched off on the menu.
        InsufficientFundsError: if paying by wallet and the balance is short.

    """
    if not cart:
        raise EmptyCartError("Cart is empty")
    if not restaurant.is_open:
        raise RestaurantClosedError(f"{restaurant.name} is not accepting orders")

    for entry in cart:
        current = restaurant.get_item(entry.menu_item.id)
        if current is None or not current.is_available:
            raise ItemUnavailableError(
                f"{entry.menu_item.name} is not available at {restaurant.name}"
            )

    subtotal = cart_subtotal(cart)
    total = round(subtotal + restaurant.delivery_fee, 2)

    if payment_method == PaymentMethod.WALLET:
        if wallet is None:
            raise InsufficientFundsError(0.0, total)
        wallet.ensure_covers(total)

    return Order(
        id=order_id or generate_order_id(),
        customer_id=customer_id,
        restaurant_id=restaurant.id,
        items=[entry.to_line_item() for entry in cart],
        total=total,
        status=OrderStatus.PENDING,
        delivery_address=delivery_address,
        delivery_instructions=delivery_instructions,
        payment_method=payment_method,
        loyalty_points_earned=loyalty_points_for(subtotal),
    )
