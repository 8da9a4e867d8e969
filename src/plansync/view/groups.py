"""Assemble the top-level groups for each view mode."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from plansync.hierarchy import HierarchyIndex, HierarchyNode
from plansync.records import Status

from .coordinator import ViewMode
from .rendering import group_label


@dataclass(slots=True)
class ViewGroup:
    """One top-level section of a view.

    Attributes:
        key: Group identifier; the status value or ``"hierarchy"``.
        label: Display heading.
        nodes: Members in display order.
        status: Status represented by the group in status mode.
    """

    key: str
    label: str
    nodes: list[HierarchyNode] = field(default_factory=list)
    status: Optional[Status] = None


def build_groups(index: HierarchyIndex, mode: ViewMode, *, show_archived: bool) -> list[ViewGroup]:
    """Return the groups of ``mode`` from the current index state.

    Status mode yields one group per status in lifecycle order; the Archived
    group is omitted unless ``show_archived`` is set. Hierarchy mode yields a
    single group holding the root nodes.
    """
    if mode is ViewMode.STATUS:
        groups = []
        for status, members in index.get_grouped_by_status().items():
            if status is Status.ARCHIVED and not show_archived:
                continue
            groups.append(
                ViewGroup(
                    key=status.value,
                    label=group_label(status, len(members)),
                    nodes=members,
                    status=status,
                )
            )
        return groups

    roots = visible_nodes(index.roots(), show_archived=show_archived)
    return [ViewGroup(key=ViewMode.HIERARCHY.value, label="All items", nodes=roots)]


def visible_nodes(nodes: list[HierarchyNode], *, show_archived: bool) -> list[HierarchyNode]:
    """Drop archived nodes unless archived items are shown."""
    if show_archived:
        return list(nodes)
    return [node for node in nodes if node.effective_status is not Status.ARCHIVED]


__all__ = ["ViewGroup", "build_groups", "visible_nodes"]
