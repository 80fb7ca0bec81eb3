"""Base record store classes and interfaces for the marketplace."""

from abc import ABC, abstractmethod
from typing import Any, Literal, get_args

from pydantic import ValidationError

from ..errors import StoreUnavailableError
from ..shared.models import (
    FavoritesAdapter,
    Order,
    OrderListAdapter,
    Restaurant,
    RestaurantListAdapter,
)

Collection = Literal["restaurants", "orders", "favorites"]
COLLECTIONS: tuple[Collection, ...] = get_args(Collection)


class BaseRecordStore(ABC):
    """Abstract keyed store holding whole collections.

    The store only knows two verbs: read every item of a collection, or
    replace every item of a collection. There are no partial updates and no
    transactions; every mutation is read-modify-write-all at the caller.

    Implementations must raise StoreUnavailableError when the underlying
    medium cannot serve a request.
    """

    @abstractmethod
    async def read_all(self, collection: Collection) -> list[Any]:
        """Read every item of a collection as JSON-compatible data."""
        pass

    @abstractmethod
    async def write_all(self, collection: Collection, items: list[Any]) -> None:
        """Replace the contents of a collection with the given items."""
        pass

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by the store."""
        pass

    async def get_restaurants(self) -> list[Restaurant]:
        """Read the restaurants collection."""
        return self._validate(
            "restaurants", RestaurantListAdapter, await self.read_all("restaurants")
        )

    async def save_restaurants(self, restaurants: list[Restaurant]) -> None:
        """Replace the restaurants collection."""
        await self.write_all(
            "restaurants", [r.model_dump(mode="json") for r in restaurants]
        )

    async def get_orders(self) -> list[Order]:
        """Read the orders collection."""
        return self._validate("orders", OrderListAdapter, await self.read_all("orders"))

    async def save_orders(self, orders: list[Order]) -> None:
        """Replace the orders collection."""
        await self.write_all("orders", [o.model_dump(mode="json") for o in orders])

    async def get_favorites(self) -> list[str]:
        """Read the favorites set of the active customer."""
        return self._validate(
            "favorites", FavoritesAdapter, await self.read_all("favorites")
        )

    async def save_favorites(self, favorites: list[str]) -> None:
        """Replace the favorites set."""
        await self.write_all("favorites", list(dict.fromkeys(favorites)))

    @staticmethod
    def _validate(collection: Collection, adapter: Any, data: list[Any]) -> Any:
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            raise StoreUnavailableError(
                f"Collection {collection!r} holds malformed records: {e}"
            ) from e
