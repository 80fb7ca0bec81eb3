"""Exception hierarchy for the marketplace engine."""

from .shared.models import OrderStatus


class MarketplaceError(Exception):
    """Base class for all marketplace errors."""


class InvalidTransitionError(MarketplaceError):
    """Raised when a requested status is unreachable from the order's current status."""

    def __init__(
        self,
        order_id: str,
        current: OrderStatus,
        target: OrderStatus,
        message: str | None = None,
    ):
        """Initialize the error with the rejected edge."""
        self.order_id = order_id
        self.current = current
        self.target = target
        self.message = (
            message
            or f"Cannot transition order {order_id} from {current.value} to {target.value}"
        )
        super().__init__(self.message)


class OrderNotFoundError(MarketplaceError):
    """Raised when an order id is not present in the orders collection."""

    def __init__(self, order_id: str):
        """Initialize the error with the missing id."""
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class DuplicateOrderError(MarketplaceError):
    """Raised when placing an order whose id already exists."""

    def __init__(self, order_id: str):
        """Initialize the error with the conflicting id."""
        self.order_id = order_id
        super().__init__(f"Order already exists: {order_id}")


class RestaurantNotFoundError(MarketplaceError):
    """Raised when a restaurant id is not present in the restaurants collection."""

    def __init__(self, restaurant_id: str):
        """Initialize the error with the missing id."""
        self.restaurant_id = restaurant_id
        super().__init__(f"Restaurant not found: {restaurant_id}")


class CheckoutError(MarketplaceError):
    """Caller-side precondition failure; the order must not be created."""


class InsufficientFundsError(CheckoutError):
    """Raised when the wallet balance does not cover the order total."""

    def __init__(self, balance: float, required: float):
        """Initialize the error with the balance shortfall."""
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient Diamond Wallet funds: balance {balance:.2f}, required {required:.2f}"
        )


class EmptyCartError(CheckoutError):
    """Raised when checking out with no items."""


class RestaurantClosedError(CheckoutError):
    """Raised when ordering from a restaurant that is not open."""


class ItemUnavailableError(CheckoutError):
    """Raised when a cart contains an item the merchant switched off."""


class PredictionUnavailableError(MarketplaceError):
    """Raised when the ETA prediction collaborator fails or returns malformed data."""


class StoreUnavailableError(MarketplaceError):
    """Raised when the record store cannot complete a read or write."""

    def __init__(self, message: str = "Record store is unavailable"):
        """Initialize the StoreUnavailableError with a message."""
        self.message = message
        super().__init__(self.message)
