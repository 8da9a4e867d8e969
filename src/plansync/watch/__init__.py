"""Filesystem change detection with debounced refreshes."""

from .debounce import Clock, Debouncer, ManualClock, SystemClock
from .git import DEFAULT_GIT_SETTLE_SECONDS, GitOperationDetector, find_git_dir
from .service import (
    DEFAULT_DEBOUNCE_SECONDS,
    DEFAULT_MAX_PENDING_EVENTS,
    ChangeEvent,
    ChangeWatcher,
)

__all__ = [
    "Clock",
    "Debouncer",
    "ManualClock",
    "SystemClock",
    "DEFAULT_DEBOUNCE_SECONDS",
    "DEFAULT_MAX_PENDING_EVENTS",
    "ChangeEvent",
    "ChangeWatcher",
    "DEFAULT_GIT_SETTLE_SECONDS",
    "GitOperationDetector",
    "find_git_dir",
]
