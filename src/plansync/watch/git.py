"""Detect git operations that rewrite many item files at once."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from .debounce import Clock, SystemClock

LOGGER = logging.getLogger(__name__)

DEFAULT_GIT_SETTLE_SECONDS = 0.5
GIT_ACTIVITY_FILES = frozenset({"HEAD", "index"})
GIT_MARKERS = ("index.lock", "rebase-merge", "rebase-apply")


def find_git_dir(start: Path) -> Optional[Path]:
    """Return the ``.git`` directory of the repository containing ``start``.

    Args:
        start: Directory to search from; its ancestors are searched too.

    Returns:
        Optional[Path]: The ``.git`` directory, or ``None`` outside a repository.
    """
    for candidate in (start, *start.parents):
        git_dir = candidate / ".git"
        if git_dir.is_dir():
            return git_dir
    return None


class GitOperationDetector:
    """Report whether a checkout, merge or rebase is still rewriting files.

    An operation counts as running while git holds one of its marker paths
    (``index.lock``, ``rebase-merge``, ``rebase-apply``) and for a settle
    window after the last change to ``HEAD`` or ``index``.
    """

    def __init__(
        self,
        git_dir: Optional[Path],
        *,
        clock: Optional[Clock] = None,
        settle_seconds: float = DEFAULT_GIT_SETTLE_SECONDS,
        enabled: bool = True,
    ) -> None:
        """Initialize the detector.

        Args:
            git_dir: Repository metadata directory; ``None`` disables detection.
            clock: Time source for the settle window.
            settle_seconds: Quiet period after the last ``HEAD``/``index`` change.
            enabled: Whether detection is active at all.
        """
        if settle_seconds < 0:
            raise ValueError("settle_seconds must not be negative")
        self._git_dir = git_dir
        self._clock: Clock = clock or SystemClock()
        self._settle = settle_seconds
        self._enabled = enabled and git_dir is not None
        self._last_activity: Optional[float] = None
        self._lock = threading.Lock()
        if enabled and git_dir is None:
            LOGGER.debug("No git repository found; git operation detection disabled.")

    @property
    def git_dir(self) -> Optional[Path]:
        """Return the watched ``.git`` directory."""
        return self._git_dir

    @property
    def enabled(self) -> bool:
        """Return whether detection is active."""
        return self._enabled

    def is_activity_path(self, path: Path) -> bool:
        """Return whether ``path`` is a git file whose change signals an operation."""
        if not self._enabled or self._git_dir is None:
            return False
        return path.parent == self._git_dir and path.name in GIT_ACTIVITY_FILES

    def note_activity(self) -> None:
        """Record a change to ``HEAD`` or ``index``; restarts the settle window."""
        if not self._enabled:
            return
        with self._lock:
            if self._last_activity is None:
                LOGGER.debug("Git activity detected in %s.", self._git_dir)
            self._last_activity = self._clock.monotonic()

    def in_progress(self) -> bool:
        """Return whether refreshes should wait for git to finish."""
        if not self._enabled or self._git_dir is None:
            return False
        if any((self._git_dir / marker).exists() for marker in GIT_MARKERS):
            return True
        with self._lock:
            if self._last_activity is None:
                return False
            if self._clock.monotonic() - self._last_activity < self._settle:
                return True
            self._last_activity = None
            return False


__all__ = [
    "DEFAULT_GIT_SETTLE_SECONDS",
    "GIT_MARKERS",
    "GitOperationDetector",
    "find_git_dir",
]
