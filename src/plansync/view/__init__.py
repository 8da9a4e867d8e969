"""View preferences, grouping and display helpers."""

from .coordinator import (
    DEFAULT_VIEW_MODE,
    RefreshEvent,
    RefreshListener,
    ViewMode,
    ViewSyncCoordinator,
)
from .groups import ViewGroup, build_groups, visible_nodes
from .rendering import format_badge, group_label, render_progress_bar

__all__ = [
    "DEFAULT_VIEW_MODE",
    "RefreshEvent",
    "RefreshListener",
    "ViewMode",
    "ViewSyncCoordinator",
    "ViewGroup",
    "build_groups",
    "visible_nodes",
    "format_badge",
    "group_label",
    "render_progress_bar",
]
