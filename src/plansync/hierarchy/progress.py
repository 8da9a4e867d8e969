"""Completion ratios over direct children."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from plansync.records import Status

from .models import HierarchyNode


@dataclass(frozen=True, slots=True)
class Progress:
    """Completion of a node's direct children.

    Attributes:
        completed: Direct children whose effective status is ``Completed``.
        total: Number of direct children.
    """

    completed: int
    total: int

    @property
    def percentage(self) -> int:
        """Return completion as a rounded percentage."""
        return round(self.completed / self.total * 100) if self.total else 0

    @property
    def display(self) -> str:
        """Return the compact ``(completed/total)`` form."""
        return f"({self.completed}/{self.total})"


class ProgressAggregator:
    """Compute and memoize per-node progress.

    Only direct children count; grandchildren do not contribute. A node without
    children has no progress at all, which is distinct from ``0/0``.
    """

    def __init__(self) -> None:
        self._memo: dict[str, Optional[Progress]] = {}
        self._generation = 0
        self._lock = threading.Lock()

    def calculate(self, node: HierarchyNode) -> Optional[Progress]:
        """Return the progress of ``node``.

        Args:
            node: Node whose direct children are counted.

        Returns:
            Optional[Progress]: Completion counts, or ``None`` for a childless node.
        """
        with self._lock:
            if node.id in self._memo:
                return self._memo[node.id]
            generation = self._generation

        if not node.children:
            progress = None
        else:
            completed = sum(
                1 for child in node.children if child.effective_status is Status.COMPLETED
            )
            progress = Progress(completed=completed, total=len(node.children))

        with self._lock:
            # An invalidation during the count makes this result stale.
            if generation == self._generation:
                self._memo[node.id] = progress
        return progress

    def invalidate(self) -> None:
        """Forget every memoized value."""
        with self._lock:
            self._memo.clear()
            self._generation += 1

    def invalidate_node(self, item_id: str) -> None:
        """Forget the memoized value of one node."""
        with self._lock:
            self._memo.pop(item_id, None)
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._memo)


__all__ = ["Progress", "ProgressAggregator"]
