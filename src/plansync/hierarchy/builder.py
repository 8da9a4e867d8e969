"""Resolve parent links and assemble the item tree."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from plansync.records import (
    DEFAULT_ARCHIVE_DIRNAME,
    ItemType,
    Record,
    effective_status,
    item_sort_key,
)

from .models import HierarchyNode, HierarchyTree

LOGGER = logging.getLogger(__name__)

CONTAINER_TYPES = (ItemType.PROJECT, ItemType.EPIC, ItemType.FEATURE)


def build_hierarchy(
    records: Iterable[Record],
    *,
    root: Optional[Path] = None,
    archive_dirname: str = DEFAULT_ARCHIVE_DIRNAME,
) -> HierarchyTree:
    """Build the parent/child tree for ``records``.

    The parent of a record comes from its explicit ``parent`` field, otherwise
    from the directory layout, otherwise (epics only) from the first dependency
    naming a project. Unknown parents and cycle-closing edges are dropped and the
    affected node is attached at the root.

    Args:
        records: Records to arrange; ids are assumed unique.
        root: Workspace root used for archive detection.
        archive_dirname: Directory name designating the archive sub-tree.

    Returns:
        HierarchyTree: Roots, nodes, and resolved parent links.
    """
    by_id = {record.id: record for record in records}
    ordered_ids = sorted(by_id, key=item_sort_key)
    owners = _directory_owners(by_id[item_id] for item_id in ordered_ids)

    parents: dict[str, Optional[str]] = {}
    for item_id in ordered_ids:
        parents[item_id] = _resolve_parent(by_id[item_id], by_id, owners)

    _break_cycles(ordered_ids, parents)

    nodes = {
        item_id: HierarchyNode(
            record=by_id[item_id],
            effective_status=effective_status(by_id[item_id], root, archive_dirname),
        )
        for item_id in ordered_ids
    }
    tree = HierarchyTree(nodes=nodes, parents=parents)
    for item_id in ordered_ids:
        parent_id = parents[item_id]
        if parent_id is None:
            tree.roots.append(nodes[item_id])
        else:
            nodes[parent_id].children.append(nodes[item_id])
    return tree


def _directory_owners(records: Iterable[Record]) -> dict[Path, str]:
    """Map directories to the container record whose file names the directory.

    ``epic-04-kanban/epic.md`` owns ``epic-04-kanban/``.
    """
    owners: dict[Path, str] = {}
    for record in records:
        if record.type not in CONTAINER_TYPES:
            continue
        if record.path.stem.lower() != record.type.value:
            continue
        directory = record.path.parent
        if directory in owners:
            LOGGER.warning(
                "Directory %s already owned by %s; ignoring %s.", directory, owners[directory], record.id
            )
            continue
        owners[directory] = record.id
    return owners


def _resolve_parent(
    record: Record,
    by_id: dict[str, Record],
    owners: dict[Path, str],
) -> Optional[str]:
    if record.parent:
        if record.parent == record.id:
            LOGGER.error("Item %s declares itself as parent; attaching at root.", record.id)
            return None
        if record.parent not in by_id:
            LOGGER.warning(
                "Parent %s of %s not found; attaching at root.", record.parent, record.id
            )
            return None
        return record.parent

    conventional = _conventional_parent(record, owners)
    if conventional is not None:
        return conventional

    if record.type is ItemType.EPIC:
        for dependency in record.dependencies:
            candidate = by_id.get(dependency)
            if candidate is not None and candidate.type is ItemType.PROJECT:
                return dependency
    return None


def _conventional_parent(record: Record, owners: dict[Path, str]) -> Optional[str]:
    directory = record.path.parent
    if owners.get(directory) == record.id:
        directory = directory.parent
    for candidate in (directory, *directory.parents):
        owner = owners.get(candidate)
        if owner is not None and owner != record.id:
            return owner
    return None


def _break_cycles(ordered_ids: list[str], parents: dict[str, Optional[str]]) -> None:
    """Detach every node whose parent chain leads back to itself."""
    acyclic: set[str] = set()
    for item_id in ordered_ids:
        chain: list[str] = []
        seen: set[str] = set()
        current: Optional[str] = item_id
        while current is not None and current not in acyclic:
            if current in seen:
                # ``current`` closes the loop; its edge back into the chain goes.
                LOGGER.error(
                    "Cycle detected in parent links (%s); attaching %s at root.",
                    " -> ".join([*chain, current]),
                    current,
                )
                parents[current] = None
                break
            seen.add(current)
            chain.append(current)
            current = parents.get(current)
        acyclic.update(chain)


__all__ = ["CONTAINER_TYPES", "build_hierarchy"]
