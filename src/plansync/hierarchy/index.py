"""Cached structural and status-grouped views over the repository."""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Union

from plansync.cache import CacheEntry
from plansync.ingestion import ItemRepository
from plansync.records import DEFAULT_ARCHIVE_DIRNAME, STATUS_ORDER, Record, Status

from .builder import build_hierarchy
from .models import HierarchyNode, HierarchyTree

LOGGER = logging.getLogger(__name__)

NodeRef = Union[HierarchyNode, str]


class HierarchyIndex:
    """Derive and cache the item tree from an ``ItemRepository``.

    The tree, the status grouping and the per-node children lookups share one
    lifetime: ``invalidate`` drops all of them together.
    """

    def __init__(
        self,
        repository: ItemRepository,
        *,
        archive_dirname: str = DEFAULT_ARCHIVE_DIRNAME,
    ) -> None:
        self._repository = repository
        self._archive_dirname = archive_dirname
        self._tree: CacheEntry[HierarchyTree] = CacheEntry()
        self._grouped: CacheEntry[dict[Status, list[HierarchyNode]]] = CacheEntry()
        self._children: dict[str, list[HierarchyNode]] = {}
        self._lock = threading.RLock()
        self._build_count = 0

    @property
    def build_count(self) -> int:
        """Return how many times the tree has been rebuilt."""
        return self._build_count

    def build(self, records: Iterable[Record]) -> HierarchyTree:
        """Build a tree for ``records`` without touching the cache."""
        return build_hierarchy(
            records,
            root=self._repository.root,
            archive_dirname=self._archive_dirname,
        )

    def tree(self) -> HierarchyTree:
        """Return the cached tree, rebuilding it from the repository if needed."""
        with self._lock:
            return self._tree.get_or_compute(self._rebuild)

    def roots(self) -> list[HierarchyNode]:
        """Return the top-level nodes."""
        return list(self.tree().roots)

    def node(self, item_id: str) -> Optional[HierarchyNode]:
        """Return the current node for ``item_id``, if present."""
        return self.tree().node(item_id)

    def get_grouped_by_status(self) -> dict[Status, list[HierarchyNode]]:
        """Bucket every node by effective status, ignoring parentage.

        Returns:
            dict[Status, list[HierarchyNode]]: All seven statuses in lifecycle
            order, each with its members ordered by item id.
        """
        with self._lock:
            grouped = self._grouped.get_or_compute(self._group)
            return {status: list(members) for status, members in grouped.items()}

    def get_children_of(self, node: NodeRef) -> list[HierarchyNode]:
        """Return the structural children of ``node``.

        Args:
            node: A node (possibly from an earlier build) or an item id.

        Returns:
            list[HierarchyNode]: Children from the current tree; empty when the
            item no longer exists.
        """
        item_id = node if isinstance(node, str) else node.id
        with self._lock:
            cached = self._children.get(item_id)
            if cached is None:
                current = self.tree().node(item_id)
                cached = list(current.children) if current is not None else []
                self._children[item_id] = cached
            return list(cached)

    def invalidate(self) -> None:
        """Drop the tree and every derived lookup."""
        with self._lock:
            self._tree.invalidate()
            self._grouped.invalidate()
            self._children.clear()

    def _rebuild(self) -> HierarchyTree:
        tree = self.build(self._repository.load_all())
        self._build_count += 1
        LOGGER.debug("Built hierarchy with %d nodes and %d roots.", len(tree.nodes), len(tree.roots))
        return tree

    def _group(self) -> dict[Status, list[HierarchyNode]]:
        grouped: dict[Status, list[HierarchyNode]] = {status: [] for status in STATUS_ORDER}
        for node in self.tree().nodes.values():
            grouped[node.effective_status].append(node)
        return grouped


__all__ = ["HierarchyIndex", "NodeRef"]
