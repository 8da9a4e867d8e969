"""Tree structures derived from the flat record set."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Optional

from plansync.records import Record, Status


@dataclass(slots=True, eq=False)
class HierarchyNode:
    """A record together with its resolved structural children.

    Attributes:
        record: Parsed item backing this node.
        effective_status: Display status after the archive override.
        children: Direct children ordered by item id.
    """

    record: Record
    effective_status: Status
    children: list["HierarchyNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        """Return the item id of the wrapped record."""
        return self.record.id

    @property
    def is_leaf(self) -> bool:
        """Return whether the node has no children."""
        return not self.children

    def __repr__(self) -> str:
        return f"HierarchyNode({self.id!r}, {self.effective_status.value!r}, children={len(self.children)})"


@dataclass(slots=True)
class HierarchyTree:
    """Result of building the hierarchy.

    Attributes:
        roots: Top-level nodes ordered by item id.
        nodes: Every node keyed by item id.
        parents: Resolved parent id per item id (``None`` for roots).
    """

    roots: list[HierarchyNode] = field(default_factory=list)
    nodes: dict[str, HierarchyNode] = field(default_factory=dict)
    parents: dict[str, Optional[str]] = field(default_factory=dict)

    def node(self, item_id: str) -> Optional[HierarchyNode]:
        """Return the node for ``item_id``, if present."""
        return self.nodes.get(item_id)

    def parent_of(self, item_id: str) -> Optional[HierarchyNode]:
        """Return the structural parent of ``item_id``, if any."""
        parent_id = self.parents.get(item_id)
        return self.nodes.get(parent_id) if parent_id else None

    def walk(self) -> Iterator[HierarchyNode]:
        """Yield every node depth-first in display order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


__all__ = ["HierarchyNode", "HierarchyTree"]
