"""Poll-based synchronization of the in-memory view with the record store."""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from types import TracebackType

from ..errors import StoreUnavailableError
from ..shared.models import Restaurant, Snapshot
from ..store.base import BaseRecordStore

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot, Snapshot], Awaitable[None] | None]


class SynchronizationLoop:
    """Keeps a full snapshot of every collection eventually consistent with the store.

    The store never pushes changes, so the loop re-reads restaurants, orders
    and favorites on a fixed cadence and replaces the snapshot wholesale.
    Local mutations run inside :meth:`mutation`, which re-reads right after
    the write so the initiating role sees its own effect without waiting
    for the next tick.

    Subscribers are called with ``(previous, current)`` after each published
    snapshot.
    """

    def __init__(
        self,
        store: BaseRecordStore,
        *,
        interval: float = 3.0,
        seed_restaurants: Callable[[], list[Restaurant]] | None = None,
    ):
        """Initialize the loop.

        Args:
            store: The record store to mirror
            interval: Seconds between polls
            seed_restaurants: Catalog factory written when the store has no restaurants on start

        """
        self._store = store
        self._interval = interval
        self._seed_restaurants = seed_restaurants
        self._snapshot = Snapshot()
        self._subscribers: list[SnapshotCallback] = []
        self._task: asyncio.Task[None] | None = None
        self._pending_mutations = 0
        # Serializes read-modify-write cycles against the store
        self._write_lock = asyncio.Lock()
        self._read_sequence = 0
        self._published_sequence = 0

    @property
    def snapshot(self) -> Snapshot:
        """The most recently published snapshot."""
        return self._snapshot

    @property
    def is_syncing(self) -> bool:
        """True while any write-then-reread cycle is in flight."""
        return self._pending_mutations > 0

    @property
    def is_running(self) -> bool:
        """Whether the polling task is active."""
        return self._task is not None and not self._task.done()

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a snapshot subscriber. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def start(self) -> Snapshot:
        """Perform the blocking initial load, then start polling."""
        if self.is_running:
            return self._snapshot

        self._pending_mutations += 1
        try:
            if self._seed_restaurants is not None:
                async with self._write_lock:
                    restaurants = await self._store.get_restaurants()
                    if not restaurants:
                        catalog = self._seed_restaurants()
                        logger.info(
                            f"Store has no restaurants, seeding {len(catalog)} from catalog"
                        )
                        await self._store.save_restaurants(catalog)
            snapshot = await self.refresh()
        finally:
            self._pending_mutations -= 1

        self._task = asyncio.create_task(self._poll_forever(), name="sync-loop")
        return snapshot

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def refresh(self) -> Snapshot:
        """Read all three collections and publish them as one snapshot.

        Every collection is read before anything is published. If a newer
        read has already been published by the time this one completes, the
        result is discarded.
        """
        self._read_sequence += 1
        sequence = self._read_sequence

        restaurants = await self._store.get_restaurants()
        orders = await self._store.get_orders()
        favorites = await self._store.get_favorites()

        if sequence < self._published_sequence:
            logger.debug(f"Discarding stale read #{sequence}")
            return self._snapshot

        previous = self._snapshot
        current = Snapshot(restaurants=restaurants, orders=orders, favorites=favorites)
        self._published_sequence = sequence
        self._snapshot = current
        await self._publish(previous, current)
        return current

    @asynccontextmanager
    async def mutation(self) -> AsyncIterator[None]:
        """Wrap a local write; re-read everything once it completes.

        Mutation bodies run one at a time, so a read-modify-write of a whole
        collection never interleaves with another. The lock is released
        before the re-read, so snapshot subscribers may start new mutations.

        The syncing indicator is raised for the whole write-then-reread cycle
        and lowered on every exit path. Errors from the write propagate to the
        caller. A failed re-read is logged and left to the next tick.
        """
        self._pending_mutations += 1
        try:
            async with self._write_lock:
                yield
            try:
                await self.refresh()
            except StoreUnavailableError as e:
                logger.warning(f"Re-read after write failed, waiting for next tick: {e}")
        finally:
            self._pending_mutations -= 1

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh()
            except StoreUnavailableError as e:
                logger.warning(f"Sync tick skipped: {e}")

    async def _publish(self, previous: Snapshot, current: Snapshot) -> None:
        for callback in list(self._subscribers):
            try:
                result = callback(previous, current)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Snapshot subscriber {callback!r} failed")

    async def __aenter__(self) -> "SynchronizationLoop":
        """Start the loop."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Stop the loop."""
        await self.stop()
