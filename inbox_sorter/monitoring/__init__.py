"""Monitoring module for watch mode."""

from .watcher import (
    InboxWatcher,
    InboxEventHandler,
    ChangeTracker,
)

__all__ = [
    "InboxWatcher",
    "InboxEventHandler",
    "ChangeTracker",
]
