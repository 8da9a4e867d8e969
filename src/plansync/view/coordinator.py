"""View-mode preference and ordered cache invalidation."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

from plansync.hierarchy import HierarchyIndex, ProgressAggregator
from plansync.ingestion import ItemRepository
from plansync.state import StateError, ViewStateStore

LOGGER = logging.getLogger(__name__)

VIEW_MODE_KEY = "view_mode"
SHOW_ARCHIVED_KEY = "show_archived"


class ViewMode(str, Enum):
    """How items are grouped for display."""

    STATUS = "status"
    HIERARCHY = "hierarchy"

    @classmethod
    def parse(cls, value: object) -> "ViewMode":
        """Return the mode named by ``value``.

        ``statusGrouped`` and ``hierarchyGrouped`` are accepted as aliases.

        Raises:
            ValueError: If ``value`` names no mode.
        """
        if isinstance(value, ViewMode):
            return value
        text = str(value).strip().lower()
        if text.endswith("grouped"):
            text = text[: -len("grouped")]
        for member in cls:
            if text == member.value:
                return member
        raise ValueError(f"Unknown view mode: {value!r}")


DEFAULT_VIEW_MODE = ViewMode.HIERARCHY


@dataclass(frozen=True, slots=True)
class RefreshEvent:
    """Notification sent to listeners after the caches were invalidated.

    Attributes:
        sequence: Monotonic refresh counter, starting at 1.
        reason: Short label describing what triggered the refresh.
        paths: Files whose changes led to the refresh, if known.
    """

    sequence: int
    reason: str
    paths: tuple[Path, ...] = ()


RefreshListener = Callable[[RefreshEvent], None]


class ViewSyncCoordinator:
    """Own the view preferences and invalidate derived caches in order.

    Preferences are written to a ``ViewStateStore`` on a background worker.
    A failed write is logged and the in-memory value is kept.
    """

    def __init__(
        self,
        repository: ItemRepository,
        hierarchy: HierarchyIndex,
        progress: ProgressAggregator,
        store: ViewStateStore,
        *,
        default_mode: ViewMode = DEFAULT_VIEW_MODE,
        default_show_archived: bool = False,
        executor: Optional[Executor] = None,
    ) -> None:
        """Initialize the coordinator and load stored preferences.

        Args:
            repository: Record repository (first invalidation tier).
            hierarchy: Hierarchy index (second tier).
            progress: Progress aggregator (third tier).
            store: Key-value store for preferences.
            default_mode: Mode used when nothing valid is stored.
            default_show_archived: Archive visibility used when nothing valid is stored.
            executor: Executor for preference writes; a single worker thread is
                created when omitted.
        """
        self._repository = repository
        self._hierarchy = hierarchy
        self._progress = progress
        self._store = store
        self._default_mode = default_mode
        self._default_show_archived = default_show_archived
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="plansync-state"
        )
        self._pending: set[Future[Any]] = set()
        self._listeners: list[RefreshListener] = []
        self._lock = threading.Lock()
        self._sequence = 0

        stored = self._read_stored()
        self._mode = self._restore(
            stored, VIEW_MODE_KEY, default_mode, lambda value: ViewMode.parse(value)
        )
        self._show_archived = self._restore(
            stored, SHOW_ARCHIVED_KEY, default_show_archived, _parse_bool
        )

    # ------------------------------------------------------------------ #
    # Preferences                                                        #
    # ------------------------------------------------------------------ #

    @property
    def view_mode(self) -> ViewMode:
        """Return the current view mode."""
        return self._mode

    @property
    def show_archived(self) -> bool:
        """Return whether archived items are listed."""
        return self._show_archived

    def set_mode(self, mode: Union[ViewMode, str]) -> bool:
        """Switch the view mode, persist it and refresh.

        Args:
            mode: Target mode, as an enum member or its string value.

        Returns:
            bool: ``True`` if the mode changed.
        """
        try:
            target = ViewMode.parse(mode)
        except ValueError:
            LOGGER.warning("Ignoring invalid view mode %r.", mode)
            return False
        if target is self._mode:
            LOGGER.debug("View mode already %s; nothing to do.", target.value)
            return False

        self._mode = target
        self._persist(VIEW_MODE_KEY, target.value)
        self.refresh(reason="view-mode")
        return True

    def set_show_archived(self, value: bool) -> bool:
        """Toggle archived item visibility, persist it and refresh.

        Returns:
            bool: ``True`` if the setting changed.
        """
        if not isinstance(value, bool):
            LOGGER.warning("Ignoring invalid show-archived value %r.", value)
            return False
        if value == self._show_archived:
            return False
        self._show_archived = value
        self._persist(SHOW_ARCHIVED_KEY, value)
        self.refresh(reason="show-archived")
        return True

    # ------------------------------------------------------------------ #
    # Refresh                                                            #
    # ------------------------------------------------------------------ #

    def refresh(self, *, reason: str = "manual", paths: Iterable[Path] = ()) -> RefreshEvent:
        """Invalidate repository, hierarchy and progress, then notify listeners.

        Args:
            reason: Label passed to listeners.
            paths: Files that triggered the refresh.

        Returns:
            RefreshEvent: The notification that was delivered.
        """
        self._repository.invalidate()
        self._hierarchy.invalidate()
        self._progress.invalidate()

        with self._lock:
            self._sequence += 1
            event = RefreshEvent(sequence=self._sequence, reason=reason, paths=tuple(paths))
            listeners = list(self._listeners)

        LOGGER.debug("Refresh %d (%s), %d path(s).", event.sequence, reason, len(event.paths))
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                LOGGER.exception("Refresh listener %r failed.", listener)
        return event

    @property
    def refresh_count(self) -> int:
        """Return how many refreshes have run."""
        with self._lock:
            return self._sequence

    def subscribe(self, listener: RefreshListener) -> Callable[[], None]:
        """Register ``listener`` for refresh notifications.

        Returns:
            Callable[[], None]: Function removing the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------ #
    # Lifecycle                                                          #
    # ------------------------------------------------------------------ #

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for pending preference writes to finish."""
        with self._lock:
            pending = set(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        """Flush pending writes and release the worker thread."""
        self.flush()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _read_stored(self) -> dict[str, Any]:
        try:
            return dict(self._store.load_all())
        except StateError as exc:
            # MissingStateError is a StateError; only a corrupt file is worth a warning.
            if self._store.state_path.exists():
                LOGGER.warning("Unreadable view state %s: %s", self._store.state_path, exc)
                self._persist(VIEW_MODE_KEY, self._default_mode.value)
            return {}

    def _restore(
        self,
        stored: dict[str, Any],
        key: str,
        default: Any,
        parse: Callable[[Any], Any],
    ) -> Any:
        if key not in stored:
            return default
        raw = stored[key]
        try:
            return parse(raw)
        except ValueError:
            LOGGER.warning("Invalid stored %s %r; resetting to %r.", key, raw, default)
            self._persist(key, default.value if isinstance(default, Enum) else default)
            return default

    def _persist(self, key: str, value: Any) -> None:
        future = self._executor.submit(self._store.set, key, value)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda done: self._on_persisted(key, done))

    def _on_persisted(self, key: str, future: Future[Any]) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            LOGGER.warning("Persisting %s was cancelled.", key)
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Failed to persist %s: %s", key, exc)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"Expected a boolean, got {value!r}")


__all__ = [
    "VIEW_MODE_KEY",
    "SHOW_ARCHIVED_KEY",
    "DEFAULT_VIEW_MODE",
    "ViewMode",
    "RefreshEvent",
    "RefreshListener",
    "ViewSyncCoordinator",
]
