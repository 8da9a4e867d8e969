"""Filesystem watcher that debounces item file changes into refreshes."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from plansync.ingestion import ItemRepository, PlanFileScanner
from plansync.records import FrontmatterStore
from plansync.view import RefreshEvent, ViewSyncCoordinator

from .debounce import Clock, Debouncer
from .git import GitOperationDetector

LOGGER = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.3
DEFAULT_MAX_PENDING_EVENTS = 1024


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A filesystem change relevant to the item set.

    Attributes:
        kind: One of ``created``, ``modified``, ``deleted`` or ``moved``.
        path: Affected path (the source path for moves).
        dest_path: Destination of a move.
        is_directory: Whether the path is a directory.
    """

    kind: str
    path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False


class ChangeWatcher:
    """Turn bursts of file events into single coordinator refreshes.

    Events travel through a bounded queue to one consumer. The consumer
    invalidates the affected frontmatter entries and re-arms a ``Debouncer``;
    once the quiet period passes, it calls ``ViewSyncCoordinator.refresh`` once
    for the whole burst. When the queue is full, an overflow flag stands in for
    the dropped events, which is enough because every refresh rescans fully.

    While a git operation is rewriting the workspace, a due refresh is pushed
    back one window at a time, so a checkout or rebase yields a single refresh
    once git is done.
    """

    def __init__(
        self,
        coordinator: ViewSyncCoordinator,
        repository: ItemRepository,
        *,
        clock: Optional[Clock] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
        recursive: bool = True,
        git_detector: Optional[GitOperationDetector] = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            coordinator: Receives one ``refresh`` per debounced burst.
            repository: Repository whose root is observed and whose scans may
                be marked dirty.
            clock: Time source for the debounce window.
            debounce_seconds: Quiet period before a refresh fires.
            max_pending_events: Capacity of the event queue.
            recursive: Whether subdirectories are observed.
            git_detector: Defers refreshes while a git operation is running.
        """
        if max_pending_events < 1:
            raise ValueError("max_pending_events must be at least 1")
        self._coordinator = coordinator
        self._repository = repository
        self._store: FrontmatterStore = repository.store
        self._scanner: PlanFileScanner = repository.scanner
        self._root = repository.root
        self._recursive = recursive
        self._debouncer = Debouncer(debounce_seconds, clock)
        self._git = git_detector
        self._deferred = False
        self._queue: queue.Queue[Optional[ChangeEvent]] = queue.Queue(maxsize=max_pending_events)
        self._overflowed = threading.Event()
        self._stop_event = threading.Event()
        self._observer: Optional[Observer] = None
        self._thread: Optional[threading.Thread] = None
        self._pending_paths: set[Path] = set()
        self._received = 0

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def root(self) -> Path:
        """Return the observed directory."""
        return self._root

    @property
    def debouncer(self) -> Debouncer:
        """Return the debounce slot."""
        return self._debouncer

    @property
    def received(self) -> int:
        """Return how many events the consumer has processed."""
        return self._received

    @property
    def git_detector(self) -> Optional[GitOperationDetector]:
        """Return the git operation detector, if any."""
        return self._git

    @property
    def is_running(self) -> bool:
        """Return whether the observer is active."""
        return self._observer is not None

    def is_relevant(self, path: Path, is_directory: bool = False) -> bool:
        """Return whether a change to ``path`` can affect the item set."""
        if is_directory:
            return self._scanner.matches_directory(path, self._root)
        return self._scanner.matches(path, self._root)

    def submit(self, event: ChangeEvent) -> bool:
        """Offer ``event`` to the queue without blocking.

        Args:
            event: Change to deliver to the consumer.

        Returns:
            bool: ``False`` if the queue was full and the overflow flag was set.
        """
        if self._repository.mark_dirty():
            LOGGER.debug("Change to %s arrived during a scan; scan marked dirty.", event.path)
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            if not self._overflowed.is_set():
                LOGGER.warning("Change queue full; coalescing further events into one refresh.")
            self._overflowed.set()
            return False
        return True

    def pump(self) -> Optional[RefreshEvent]:
        """Drain queued events and refresh if the debounce window has closed.

        Returns:
            Optional[RefreshEvent]: The refresh performed, if any.
        """
        self._drain(block=False)
        return self._fire_if_due()

    def watch(self, callback: Optional[Callable[[RefreshEvent], None]] = None) -> None:
        """Observe the root and process events on the calling thread.

        Args:
            callback: Invoked after each debounced refresh.
        """
        self._start_observer()
        try:
            self._run_loop(callback)
        finally:
            self.stop()

    def start(self, callback: Optional[Callable[[RefreshEvent], None]] = None) -> None:
        """Observe the root and process events on a background thread."""
        self._start_observer()
        self._thread = threading.Thread(
            target=self._run_loop, args=(callback,), name="plansync-watch", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop observing and let the consumer exit."""
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        # Unblock the consumer so it sees the stop flag.
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)
        self._thread = None

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _start_observer(self) -> None:
        if self._observer is not None:
            raise RuntimeError("ChangeWatcher is already running.")
        if not self._root.is_dir():
            raise RuntimeError(f"Cannot watch {self._root}: not a directory.")
        self._stop_event.clear()
        self._discard_stop_sentinels()
        handler = _PlanEventHandler(self)
        observer = Observer()
        observer.schedule(handler, str(self._root), recursive=self._recursive)
        git_dir = self._git.git_dir if self._git is not None and self._git.enabled else None
        if git_dir is not None and not (self._recursive and git_dir.is_relative_to(self._root)):
            observer.schedule(handler, str(git_dir), recursive=False)
        observer.start()
        self._observer = observer
        LOGGER.info("Watching %s (debounce %.2fs).", self._root, self._debouncer.delay)

    def _discard_stop_sentinels(self) -> None:
        """Drop sentinels left by an earlier ``stop``; keep queued events."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if item is not None:
                self._record(item)

    def _run_loop(self, callback: Optional[Callable[[RefreshEvent], None]]) -> None:
        while not self._stop_event.is_set():
            stopped = self._drain(block=True, timeout=self._debouncer.remaining())
            if stopped:
                break
            refresh = self._fire_if_due()
            if refresh is not None and callback is not None:
                try:
                    callback(refresh)
                except Exception:
                    LOGGER.exception("Watch callback failed for refresh %d.", refresh.sequence)

    def _drain(self, *, block: bool, timeout: Optional[float] = None) -> bool:
        """Consume queued events; return ``True`` when the stop sentinel is seen."""
        try:
            item = self._queue.get(block=block, timeout=timeout if block else None)
        except queue.Empty:
            item = None
            empty = True
        else:
            empty = False

        while not empty:
            if item is None:
                return True
            self._record(item)
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                empty = True

        if self._overflowed.is_set():
            self._overflowed.clear()
            self._debouncer.trigger()
        return self._stop_event.is_set()

    def _record(self, event: ChangeEvent) -> None:
        self._received += 1
        for path in (event.path, event.dest_path):
            if path is None:
                continue
            self._store.invalidate(path)
            self._pending_paths.add(path)
        LOGGER.debug("Change %s: %s", event.kind, event.path)
        self._debouncer.trigger()

    def _fire_if_due(self) -> Optional[RefreshEvent]:
        if self._debouncer.remaining() != 0:
            return None
        if self._git is not None and self._git.in_progress():
            if not self._deferred:
                LOGGER.info("Git operation in progress; deferring refresh.")
                self._deferred = True
            self._debouncer.trigger()
            return None
        if not self._debouncer.consume():
            return None
        if self._deferred:
            LOGGER.info("Git operation finished; refreshing.")
            self._deferred = False
        paths = sorted(self._pending_paths)
        self._pending_paths.clear()
        return self._coordinator.refresh(reason="filesystem", paths=paths)


class _PlanEventHandler(FileSystemEventHandler):
    """Forward relevant watchdog events to a ``ChangeWatcher``."""

    def __init__(self, watcher: ChangeWatcher) -> None:
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        """Handle a filesystem create event."""
        if not event.is_directory:
            self._enqueue("created", event)

    def on_modified(self, event: FileSystemEvent) -> None:
        """Handle a filesystem modify event."""
        if not event.is_directory:
            self._enqueue("modified", event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        """Handle a filesystem delete event."""
        self._enqueue("deleted", event)

    def on_moved(self, event: FileSystemEvent) -> None:  # pragma: no cover - watchdog-specific
        """Handle a filesystem move event."""
        self._enqueue("moved", event)

    def _enqueue(self, kind: str, event: FileSystemEvent) -> None:
        src = Path(_decode(event.src_path))
        dest_raw = getattr(event, "dest_path", "")
        dest = Path(_decode(dest_raw)) if dest_raw else None
        detector = self._watcher.git_detector
        if detector is not None and (
            detector.is_activity_path(src) or (dest is not None and detector.is_activity_path(dest))
        ):
            detector.note_activity()
            return
        relevant = self._watcher.is_relevant(src, event.is_directory) or (
            dest is not None and self._watcher.is_relevant(dest, event.is_directory)
        )
        if not relevant:
            return
        self._watcher.submit(
            ChangeEvent(kind=kind, path=src, dest_path=dest, is_directory=event.is_directory)
        )


def _decode(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_MAX_PENDING_EVENTS",
    "ChangeEvent",
    "ChangeWatcher",
]
