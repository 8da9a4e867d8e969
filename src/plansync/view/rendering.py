"""Text helpers for badges, labels and progress bars."""

from __future__ import annotations

from typing import Optional

from plansync.hierarchy import Progress
from plansync.records import Status

BAR_WIDTH = 10
FILLED = "█"
EMPTY = "░"


def format_badge(status: Status, progress: Optional[Progress]) -> str:
    """Return ``"<status>"`` or ``"<status> (c/t)"`` when progress is known."""
    if progress is None:
        return status.value
    return f"{status.value} {progress.display}"


def render_progress_bar(progress: Progress, width: int = BAR_WIDTH) -> str:
    """Return a unicode bar such as ``"█████░░░░░ 50% (1/2)"``."""
    filled = round(progress.percentage / 100 * width)
    bar = FILLED * filled + EMPTY * (width - filled)
    return f"{bar} {progress.percentage}% {progress.display}"


def group_label(status: Status, count: int) -> str:
    """Return the heading of a status group, e.g. ``"Ready (3)"``."""
    return f"{status.value} ({count})"


__all__ = ["BAR_WIDTH", "format_badge", "render_progress_bar", "group_label"]
