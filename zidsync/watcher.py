"""Filesystem watching with debounced, non-overlapping change callbacks."""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE = 1.0
DEFAULT_MAX_DEPTH = 99
DEFAULT_STABILITY_THRESHOLD = 0.1
DEFAULT_POLL_INTERVAL = 0.05
# Give up waiting for a file that keeps changing after this many seconds
MAX_STABILITY_WAIT = 10.0

WATCHED_EVENT_TYPES = (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
)

TimerFactory = Callable[[float, Callable[[], None]], Any]


@dataclass
class WatchState:
    """Debounce state of a watcher."""

    pending_timer: Optional[Any] = None
    upload_in_flight: bool = False


class Debouncer:
    """Coalesces bursts of triggers into one callback run.

    Every :meth:`trigger` restarts the delay. When the delay expires the
    callback runs, unless a previous run is still in progress, in which case
    the cycle is dropped; a later trigger is needed to run again.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        delay: float = DEFAULT_DEBOUNCE,
        timer_factory: TimerFactory = threading.Timer,
    ):
        self.callback = callback
        self.delay = delay
        self.state = WatchState()
        self._timer_factory = timer_factory
        self._lock = threading.Lock()

    @property
    def upload_in_flight(self) -> bool:
        return self.state.upload_in_flight

    def trigger(self) -> None:
        """Restart the debounce delay."""
        with self._lock:
            if self.state.pending_timer is not None:
                self.state.pending_timer.cancel()

            def fire() -> None:
                self._fire(timer)

            timer = self._timer_factory(self.delay, fire)
            timer.daemon = True
            self.state.pending_timer = timer
            timer.start()

    def cancel(self) -> None:
        """Cancel the pending run, if any."""
        with self._lock:
            if self.state.pending_timer is not None:
                self.state.pending_timer.cancel()
                self.state.pending_timer = None

    def _fire(self, timer: Any) -> None:
        with self._lock:
            if self.state.pending_timer is not timer:
                # Superseded by a newer trigger while waiting for the lock
                return
            self.state.pending_timer = None
            if self.state.upload_in_flight:
                logger.info("Upload already in progress, skipping")
                return
            self.state.upload_in_flight = True

        try:
            self.callback()
        except Exception:
            logger.exception("Change callback failed")
        finally:
            with self._lock:
                self.state.upload_in_flight = False


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ChangeWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self.watcher.handle_event(event)


class ChangeWatcher:
    """Watches a directory tree and reports changes once per debounce cycle."""

    def __init__(
        self,
        folder: Path,
        debounce: float = DEFAULT_DEBOUNCE,
        max_depth: int = DEFAULT_MAX_DEPTH,
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timer_factory: TimerFactory = threading.Timer,
    ):
        """Initialize the watcher.

        Args:
            folder: Directory to watch recursively
            debounce: Quiet period after the last event before the callback runs
            max_depth: Ignore events nested deeper than this many directories
            stability_threshold: How long a file must stay unchanged before
                its event counts (0 disables the check)
            poll_interval: Polling interval while waiting for stability
            timer_factory: Factory for debounce timers (injectable for tests)
        """
        self.folder = Path(folder).resolve()
        self.debounce = debounce
        self.max_depth = max_depth
        self.stability_threshold = stability_threshold
        self.poll_interval = poll_interval
        self._timer_factory = timer_factory
        self._debouncer: Optional[Debouncer] = None
        self._observer: Optional[Any] = None

    @property
    def debouncer(self) -> Optional[Debouncer]:
        return self._debouncer

    def on_change(self, callback: Callable[[], Any]) -> "ChangeWatcher":
        """Register the callback run once per debounce cycle."""
        self._debouncer = Debouncer(callback, self.debounce, self._timer_factory)
        return self

    def handle_event(self, event: FileSystemEvent) -> bool:
        """Process one raw filesystem event.

        Returns:
            True if the event restarted the debounce delay
        """
        if self._debouncer is None:
            return False
        if event.event_type not in WATCHED_EVENT_TYPES:
            return False
        # Directory mtime changes duplicate the events of their children
        if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
            return False

        path = Path(str(event.src_path))
        depth = self._depth(path)
        if depth is None or depth > self.max_depth:
            return False

        logger.info(f"Detected {event.event_type}: {path}")
        if not event.is_directory and event.event_type in (
            EVENT_TYPE_CREATED,
            EVENT_TYPE_MODIFIED,
        ):
            self._wait_until_stable(path)

        self._debouncer.trigger()
        return True

    def _depth(self, path: Path) -> Optional[int]:
        try:
            relative = path.resolve().relative_to(self.folder)
        except ValueError:
            return None
        return max(len(relative.parts) - 1, 0)

    def _wait_until_stable(self, path: Path) -> None:
        """Wait until a file stops changing (size and mtime unchanged)."""
        if self.stability_threshold <= 0:
            return

        def signature() -> Optional[tuple[int, float]]:
            try:
                stat = path.stat()
            except OSError:
                return None
            return stat.st_size, stat.st_mtime

        start = time.monotonic()
        last = signature()
        stable_since = start
        while True:
            time.sleep(self.poll_interval)
            now = time.monotonic()
            current = signature()
            if current is None:
                return
            if current != last:
                last = current
                stable_since = now
            elif now - stable_since >= self.stability_threshold:
                return
            if now - start >= MAX_STABILITY_WAIT:
                logger.warning(f"{path} is still changing, reporting it anyway")
                return

    def start(self) -> None:
        """Start watching in the background."""
        if self._debouncer is None:
            raise RuntimeError("Register a callback with on_change() first")
        observer = Observer()
        observer.schedule(_ChangeHandler(self), str(self.folder), recursive=True)
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.folder} for changes")

    def stop(self) -> None:
        """Stop watching and cancel any pending callback."""
        if self._debouncer is not None:
            self._debouncer.cancel()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def run_forever(self) -> None:
        """Watch until interrupted with Ctrl+C."""
        self.start()
        try:
            while self._observer is not None and self._observer.is_alive():
                self._observer.join(timeout=1)
        except KeyboardInterrupt:
            logger.info("Stopping watcher")
        finally:
            self.stop()
