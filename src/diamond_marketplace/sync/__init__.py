"""Snapshot synchronization with the record store."""

from .loop import SnapshotCallback, SynchronizationLoop

__all__ = ["SnapshotCallback", "SynchronizationLoop"]
