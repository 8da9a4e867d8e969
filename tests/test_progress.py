"""Tests for direct-children progress and its text rendering."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from plansync.hierarchy import HierarchyNode, Progress, ProgressAggregator
from plansync.records import ItemType, Priority, Record, Status
from plansync.view import format_badge, group_label, render_progress_bar


def _node(item_id: str, status: Status, *children: HierarchyNode) -> HierarchyNode:
    record = Record(
        id=item_id,
        title=f"Item {item_id}",
        type=ItemType.STORY,
        status=status,
        priority=Priority.MEDIUM,
        created=date(2026, 10, 1),
        updated=date(2026, 10, 2),
        path=Path(f"/plans/{item_id}.md"),
    )
    return HierarchyNode(record=record, effective_status=status, children=list(children))


def test_progress_counts_completed_direct_children() -> None:
    parent = _node(
        "F1",
        Status.IN_PROGRESS,
        _node("S1", Status.COMPLETED),
        _node("S2", Status.COMPLETED),
        _node("S3", Status.READY),
    )

    progress = ProgressAggregator().calculate(parent)

    assert progress == Progress(completed=2, total=3)
    assert progress.percentage == 67
    assert progress.display == "(2/3)"


def test_childless_node_has_no_progress() -> None:
    assert ProgressAggregator().calculate(_node("S1", Status.READY)) is None


def test_grandchildren_do_not_count() -> None:
    """Only direct children contribute, whatever their own subtree holds."""
    parent = _node(
        "E1",
        Status.IN_PROGRESS,
        _node("F1", Status.IN_PROGRESS, _node("S1", Status.COMPLETED), _node("S2", Status.COMPLETED)),
        _node("F2", Status.COMPLETED),
    )

    assert ProgressAggregator().calculate(parent) == Progress(completed=1, total=2)


def test_archived_children_count_toward_total_only() -> None:
    parent = _node("F1", Status.READY, _node("S1", Status.ARCHIVED), _node("S2", Status.COMPLETED))

    assert ProgressAggregator().calculate(parent) == Progress(completed=1, total=2)


def test_memoized_values_survive_until_invalidated() -> None:
    child = _node("S1", Status.READY)
    parent = _node("F1", Status.READY, child)
    aggregator = ProgressAggregator()

    assert aggregator.calculate(parent) == Progress(completed=0, total=1)
    child.effective_status = Status.COMPLETED
    assert aggregator.calculate(parent) == Progress(completed=0, total=1)
    assert len(aggregator) == 1

    aggregator.invalidate_node("F1")
    assert aggregator.calculate(parent) == Progress(completed=1, total=1)

    aggregator.invalidate()
    assert len(aggregator) == 0


def test_badge_and_bar_rendering() -> None:
    half = Progress(completed=1, total=2)

    assert format_badge(Status.READY, half) == "Ready (1/2)"
    assert format_badge(Status.BLOCKED, None) == "Blocked"
    assert render_progress_bar(half) == "█████░░░░░ 50% (1/2)"
    assert render_progress_bar(Progress(completed=3, total=3), width=4) == "████ 100% (3/3)"
    assert group_label(Status.IN_PROGRESS, 3) == "In Progress (3)"


class _InvalidatingChildren(list):
    """Child list that clears the aggregator the first time it is iterated."""

    def __init__(self, aggregator: ProgressAggregator, *children: HierarchyNode) -> None:
        super().__init__(children)
        self._aggregator = aggregator
        self.triggered = False

    def __iter__(self):
        if not self.triggered:
            self.triggered = True
            self._aggregator.invalidate()
        return super().__iter__()


def test_invalidation_during_calculation_is_not_overwritten() -> None:
    """A result computed across an invalidation is returned but not memoized."""
    aggregator = ProgressAggregator()
    parent = _node("F1", Status.IN_PROGRESS)
    parent.children = _InvalidatingChildren(
        aggregator, _node("S1", Status.COMPLETED), _node("S2", Status.READY)
    )

    progress = aggregator.calculate(parent)

    assert parent.children.triggered
    assert progress == Progress(completed=1, total=2)
    assert len(aggregator) == 0

    assert aggregator.calculate(parent) == Progress(completed=1, total=2)
    assert len(aggregator) == 1
