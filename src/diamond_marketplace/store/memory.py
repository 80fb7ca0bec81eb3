"""In-memory record store."""

import copy
from typing import Any

from .base import COLLECTIONS, BaseRecordStore, Collection


class InMemoryRecordStore(BaseRecordStore):
    """Record store kept in process memory.

    Items are deep-copied on the way in and out so callers never share
    mutable state with the store, mirroring a serialize/deserialize boundary.
    """

    def __init__(self, initial: dict[Collection, list[Any]] | None = None):
        """Initialize the store, optionally pre-populated."""
        self._collections: dict[Collection, list[Any]] = {
            name: [] for name in COLLECTIONS
        }
        for name, items in (initial or {}).items():
            self._collections[name] = copy.deepcopy(items)
        self.read_count = 0
        self.write_count = 0

    async def read_all(self, collection: Collection) -> list[Any]:
        """Read every item of a collection."""
        self.read_count += 1
        return copy.deepcopy(self._collections[collection])

    async def write_all(self, collection: Collection, items: list[Any]) -> None:
        """Replace a collection."""
        self.write_count += 1
        self._collections[collection] = copy.deepcopy(items)
