"""
Inbox Watcher
=============

Watch mode: monitors the inbox and starts a new sorting run once the
inbox has been quiet for a while after a change.

Events only mark the inbox dirty; the run itself happens on the thread
that calls :meth:`InboxWatcher.poll_once`, so runs never overlap.
"""

import os
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from watchdog.observers import Observer
from watchdog.events import (
    FileSystemEvent,
    FileSystemEventHandler,
)

from inbox_sorter.config.exclusions import ExclusionSet
from inbox_sorter.utils.logging_config import get_logger

logger = get_logger(__name__)


class ChangeTracker:
    """Tracks when the inbox last changed.

    A run becomes due once ``quiet_seconds`` have passed since the most
    recent change, so a burst of copies produces a single run.
    """

    def __init__(self, quiet_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        """Initialize the tracker.

        Args:
            quiet_seconds: Required time without changes before a run.
            clock: Time source, injectable for tests.
        """
        self.quiet_seconds = quiet_seconds
        self._clock = clock
        self._last_change: Optional[float] = None
        self._lock = threading.Lock()

    def mark_changed(self) -> None:
        """Record a change now."""
        with self._lock:
            self._last_change = self._clock()

    @property
    def dirty(self) -> bool:
        """Whether a change is waiting for a run."""
        with self._lock:
            return self._last_change is not None

    def take_if_due(self) -> bool:
        """Consume the pending change if the quiet period has elapsed.

        Returns:
            True if a run should start now.
        """
        with self._lock:
            if self._last_change is None:
                return False
            if self._clock() - self._last_change < self.quiet_seconds:
                return False
            self._last_change = None
            return True


class InboxEventHandler(FileSystemEventHandler):
    """Marks the inbox dirty for events that can bring in new files.

    Deletions and directory modifications are ignored: they are what the
    sorter's own moves look like from inside the inbox.
    """

    def __init__(
        self,
        inbox: Path,
        tracker: ChangeTracker,
        exclusions: ExclusionSet,
        ignore_directories: Iterable[Path] = (),
    ):
        """Initialize the event handler.

        Args:
            inbox: Watched inbox root.
            tracker: Change tracker to notify.
            exclusions: Exclusion set; events for excluded names are ignored.
            ignore_directories: Output directories nested in the inbox.
        """
        super().__init__()
        self.inbox = Path(inbox).resolve()
        self.tracker = tracker
        self.exclusions = exclusions
        self._ignored = [Path(p).resolve() for p in ignore_directories]

    def _is_relevant(self, raw_path, is_directory: bool) -> bool:
        """Check whether an event path can bring a new file into the inbox."""
        path = Path(os.fsdecode(raw_path)).resolve()

        try:
            relative = path.relative_to(self.inbox)
        except ValueError:
            return False

        for ignored in self._ignored:
            if path == ignored or ignored in path.parents:
                return False

        # The engine never enters excluded directories either
        if any(self.exclusions.is_directory_excluded(part) for part in relative.parts[:-1]):
            return False

        if is_directory:
            return not self.exclusions.is_directory_excluded(path.name)
        return not self.exclusions.is_file_excluded(path.name)

    def _notify(self, raw_path, is_directory: bool) -> None:
        if self._is_relevant(raw_path, is_directory):
            logger.debug(f"Inbox changed: {os.fsdecode(raw_path)}")
            self.tracker.mark_changed()

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle file and directory creation events."""
        self._notify(event.src_path, event.is_directory)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle file modification events.

        A file still being written keeps producing these, which pushes the
        next run back until the write has finished.
        """
        if event.is_directory:
            return
        self._notify(event.src_path, False)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle moves; only moves that end inside the inbox count."""
        self._notify(event.dest_path, event.is_directory)


class InboxWatcher:
    """Runs the sorter whenever the inbox settles after a change.

    Manages the watchdog Observer and handles starting/stopping
    the monitoring service.
    """

    def __init__(
        self,
        inbox: Path,
        run_callback: Callable[[], object],
        exclusions: ExclusionSet,
        quiet_seconds: float = 5.0,
        poll_interval: float = 1.0,
        ignore_directories: Iterable[Path] = (),
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the watcher.

        Args:
            inbox: Directory to watch recursively.
            run_callback: Starts one full sorting run.
            exclusions: Exclusion set shared with the engine.
            quiet_seconds: Time without events before a run starts.
            poll_interval: Sleep between checks in :meth:`run_forever`.
            ignore_directories: Output directories nested in the inbox.
            clock: Time source, injectable for tests.
        """
        self.inbox = Path(inbox)
        self.run_callback = run_callback
        self.poll_interval = poll_interval
        self.tracker = ChangeTracker(quiet_seconds, clock=clock)
        self.handler = InboxEventHandler(
            self.inbox, self.tracker, exclusions, ignore_directories
        )
        self.observer = Observer()
        self._running = False
        self.runs_started = 0

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running and self.observer.is_alive()

    def start(self) -> None:
        """Start watching the inbox.

        Raises:
            RuntimeError: If the inbox directory does not exist.
        """
        if not self.inbox.is_dir():
            raise RuntimeError(f"Inbox directory does not exist: {self.inbox}")

        self.observer.schedule(self.handler, str(self.inbox), recursive=True)
        self.observer.start()
        self._running = True
        logger.info(f"Watching inbox: {self.inbox}")

    def stop(self) -> None:
        """Stop the watcher service."""
        if self._running:
            self._running = False
            self.observer.stop()
            self.observer.join(timeout=5.0)
            logger.info("Inbox watcher stopped")

    def poll_once(self) -> bool:
        """Start a run if one is due.

        Returns:
            True if a run was started.
        """
        if not self.tracker.take_if_due():
            return False

        self.runs_started += 1
        logger.info("Inbox settled, starting sorting run")
        self.run_callback()
        return True

    def run_forever(self, stop_event: Optional[threading.Event] = None) -> None:
        """Poll until ``stop_event`` is set or the process is interrupted."""
        stop_event = stop_event or threading.Event()
        try:
            while not stop_event.is_set():
                self.poll_once()
                stop_event.wait(self.poll_interval)
        except KeyboardInterrupt:
            logger.info("Interrupted, stopping watcher")
        finally:
            self.stop()
