"""File watcher for incremental search.

Watches a workspace with one watchdog Observer and coalesces bursts of
events per file. Events are delivered to a sink (normally
IncrementalSearchService.mark_pending) once a file has been quiet for the
debounce delay, or immediately when flushed at the start of a query.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable
from pathlib import Path

from loguru import logger
from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from multibuffer.core.constants import DEFAULT_DEBOUNCE_DELAY

EventSink = Callable[[Path, str], None]
UpdatesReadyCallback = Callable[[list[tuple[Path, str]]], Awaitable[None] | None]


class WorkspaceEventHandler(FileSystemEventHandler):
    """Forwards file events of one workspace to a callback.

    Directory events are ignored; moves become delete + create pairs.
    """

    def __init__(
        self,
        root: Path,
        callback: EventSink,
        should_track: Callable[[Path], bool],
    ):
        """Initialize event handler.

        Args:
            root: Workspace root being watched
            callback: Function to call with (file_path, event_type)
            should_track: Function to check if a file belongs to the search scope
        """
        super().__init__()
        self.root = root
        self.callback = callback
        self.should_track = should_track

    def _normalize_path(self, path: str | bytes) -> Path:
        if isinstance(path, bytes):
            path = path.decode()
        return Path(path).resolve()

    def on_created(self, event: FileCreatedEvent) -> None:
        if event.is_directory:
            return
        file_path = self._normalize_path(event.src_path)
        if self.should_track(file_path):
            self.callback(file_path, "created")

    def on_modified(self, event: FileModifiedEvent) -> None:
        if event.is_directory:
            return
        file_path = self._normalize_path(event.src_path)
        if self.should_track(file_path):
            self.callback(file_path, "modified")

    def on_deleted(self, event: FileDeletedEvent) -> None:
        if event.is_directory:
            return
        # Always forwarded - the file may be cached
        self.callback(self._normalize_path(event.src_path), "deleted")

    def on_moved(self, event: FileMovedEvent) -> None:
        if event.is_directory:
            return

        src_path = self._normalize_path(event.src_path)
        dest_path = self._normalize_path(event.dest_path)

        self.callback(src_path, "deleted")
        if self.should_track(dest_path):
            self.callback(dest_path, "created")


class FileWatcher:
    """Debounced workspace watcher.

    Thread-safe: watchdog threads and the event loop share the pending map
    under an RLock.

    Usage:
        watcher = FileWatcher(root, sink=service.mark_pending, debounce_delay=0.5)
        watcher.start()
        ...
        watcher.flush_pending()   # deliver everything before a query
        watcher.stop()
    """

    def __init__(
        self,
        root: Path,
        sink: EventSink,
        should_track: Callable[[Path], bool] | None = None,
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
        on_updates_ready: UpdatesReadyCallback | None = None,
    ):
        """Initialize file watcher.

        Args:
            root: Directory to watch recursively
            sink: Receives (file_path, event_type) once an event is delivered
            should_track: Filter for created/modified events (default: all files)
            debounce_delay: Quiet period in seconds before an event is delivered
            on_updates_ready: Called with the delivered batch by the async processor
        """
        self.root = root.resolve()
        self._sink = sink
        self._should_track = should_track or (lambda _path: True)
        self._debounce_delay = debounce_delay
        self._on_updates_ready = on_updates_ready

        # file_path -> (event_type, last_seen)
        self._pending_events: dict[Path, tuple[str, float]] = {}
        self._pending_lock = threading.RLock()

        self._observer: Observer | None = None
        self._processor_task: asyncio.Task | None = None
        self._running = False

    @property
    def debounce_delay(self) -> float:
        return self._debounce_delay

    @property
    def is_watching(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        """Start the watchdog observer."""
        if self._observer is not None:
            return
        handler = WorkspaceEventHandler(
            root=self.root, callback=self.on_file_event, should_track=self._should_track
        )
        observer = Observer()
        observer.schedule(handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer
        logger.debug(f"Started file watcher for {self.root}")

    async def start_processor(self) -> None:
        """Start the background task that delivers debounced events."""
        if self._processor_task is not None:
            return
        self._running = True
        self._processor_task = asyncio.create_task(self._process_pending_events())

    async def stop(self) -> None:
        """Stop the processor task and the observer; pending events are dropped."""
        self._running = False
        if self._processor_task and not self._processor_task.done():
            self._processor_task.cancel()
            try:
                await self._processor_task
            except asyncio.CancelledError:
                pass
        self._processor_task = None
        self.stop_observer()

    def stop_observer(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        if self._observer.is_alive():
            logger.warning(f"File watcher thread did not stop: {self.root}")
        self._observer = None

        with self._pending_lock:
            count = len(self._pending_events)
            self._pending_events.clear()
        if count:
            logger.debug(f"Dropped {count} pending file events")

    def on_file_event(self, file_path: Path, event_type: str) -> None:
        """Record an event; repeated events for a file restart its quiet period.

        Called from watchdog threads.
        """
        with self._pending_lock:
            self._pending_events[file_path] = (event_type, time.monotonic())

    def get_pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending_events)

    def collect_ready(self, now: float | None = None) -> list[tuple[Path, str]]:
        """Remove and deliver events quiet for at least the debounce delay."""
        now = time.monotonic() if now is None else now
        with self._pending_lock:
            ready = [
                (path, event_type)
                for path, (event_type, last_seen) in self._pending_events.items()
                if now - last_seen >= self._debounce_delay
            ]
            for path, _ in ready:
                del self._pending_events[path]
        self._deliver(ready)
        return ready

    def flush_pending(self) -> list[tuple[Path, str]]:
        """Deliver every pending event now, regardless of debounce."""
        with self._pending_lock:
            ready = [(path, event_type) for path, (event_type, _) in self._pending_events.items()]
            self._pending_events.clear()
        self._deliver(ready)
        return ready

    def _deliver(self, events: list[tuple[Path, str]]) -> None:
        for path, event_type in events:
            self._sink(path, event_type)
        if events:
            logger.debug(f"Delivered {len(events)} debounced file events")

    async def _process_pending_events(self) -> None:
        interval = max(0.05, min(0.5, self._debounce_delay / 2 or 0.05))
        while self._running:
            try:
                await asyncio.sleep(interval)
                ready = self.collect_ready()
                if ready and self._on_updates_ready is not None:
                    outcome = self._on_updates_ready(ready)
                    if asyncio.iscoroutine(outcome):
                        await outcome
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Error in file watcher event processor")
                await asyncio.sleep(1.0)
