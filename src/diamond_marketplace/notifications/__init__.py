"""Order status change notifications."""

from .notifier import NOTIFICATION_TABLE, Notifier, detect_status_changes

__all__ = ["NOTIFICATION_TABLE", "Notifier", "detect_status_changes"]
