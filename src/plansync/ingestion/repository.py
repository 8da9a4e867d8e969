"""Workspace-wide record repository with a wholesale cache."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from plansync.cache import CacheEntry
from plansync.records import FrontmatterStore, ParseError, Record, item_sort_key

from .discovery import PlanFileScanner

LOGGER = logging.getLogger(__name__)


class ItemRepository:
    """Scan a workspace and serve the full set of valid records.

    The record list is cached as one unit and dropped entirely by
    ``invalidate``. Scans are serialized; an invalidation that lands while a scan
    is running marks the result dirty, and the scan is repeated before anything
    is published.
    """

    def __init__(
        self,
        root: Path,
        store: FrontmatterStore,
        scanner: Optional[PlanFileScanner] = None,
    ) -> None:
        """Initialize the repository.

        Args:
            root: Directory containing the item files.
            store: Per-file parse cache.
            scanner: File discovery strategy; defaults to recursive ``*.md``.
        """
        self._root = root.expanduser().resolve()
        self._store = store
        self._scanner = scanner or PlanFileScanner()
        self._cache: CacheEntry[list[Record]] = CacheEntry()
        self._by_id: dict[str, Record] = {}
        self._parse_errors: list[ParseError] = []
        self._scan_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._scanning = False
        self._dirty = False
        self._scan_count = 0

    @property
    def root(self) -> Path:
        """Return the scanned directory."""
        return self._root

    @property
    def store(self) -> FrontmatterStore:
        """Return the underlying frontmatter store."""
        return self._store

    @property
    def scanner(self) -> PlanFileScanner:
        """Return the discovery strategy."""
        return self._scanner

    @property
    def scan_count(self) -> int:
        """Return the number of completed directory scans."""
        return self._scan_count

    @property
    def parse_errors(self) -> list[ParseError]:
        """Return the files excluded by the most recent published scan."""
        with self._state_lock:
            return list(self._parse_errors)

    def load_all(self) -> list[Record]:
        """Return every valid record in the workspace, sorted by item id.

        Returns:
            list[Record]: Records from files that parsed successfully.
        """
        with self._scan_lock:
            while True:
                with self._state_lock:
                    if self._cache.valid:
                        return list(self._cache.value or [])
                    self._scanning = True
                    self._dirty = False
                try:
                    records, errors = self._scan()
                except BaseException:
                    with self._state_lock:
                        self._scanning = False
                    raise
                with self._state_lock:
                    self._scanning = False
                    if self._dirty:
                        LOGGER.info("Workspace changed during scan of %s; rescanning.", self._root)
                        continue
                    self._cache.set(records)
                    self._by_id = {record.id: record for record in records}
                    self._parse_errors = errors
                    return list(records)

    def get(self, item_id: str) -> Optional[Record]:
        """Return the record with ``item_id``, if present."""
        self.load_all()
        with self._state_lock:
            return self._by_id.get(item_id)

    def invalidate(self) -> None:
        """Drop the cached record set so the next read rescans."""
        with self._state_lock:
            self._cache.invalidate()
            self._by_id = {}
            if self._scanning:
                self._dirty = True

    def mark_dirty(self) -> bool:
        """Flag an in-flight scan as outdated so it is repeated before publishing.

        Returns:
            bool: ``True`` if a scan was running.
        """
        with self._state_lock:
            if self._scanning:
                self._dirty = True
            return self._scanning

    @property
    def is_scanning(self) -> bool:
        """Return whether a scan is currently running."""
        with self._state_lock:
            return self._scanning

    @property
    def is_valid(self) -> bool:
        """Return whether a cached record set is available."""
        with self._state_lock:
            return self._cache.valid

    def _scan(self) -> tuple[list[Record], list[ParseError]]:
        records: list[Record] = []
        errors: list[ParseError] = []
        seen: dict[str, Path] = {}
        for path in self._scanner.scan(self._root):
            result = self._store.get(path)
            if isinstance(result, ParseError):
                LOGGER.warning("Excluding %s: %s", result.path, result.message)
                errors.append(result)
                continue
            if result.id in seen:
                LOGGER.warning(
                    "Duplicate item id %s in %s; keeping %s.", result.id, result.path, seen[result.id]
                )
                errors.append(ParseError(path=result.path, message=f"Duplicate item id {result.id}"))
                continue
            seen[result.id] = result.path
            records.append(result)

        records.sort(key=lambda record: item_sort_key(record.id))
        self._scan_count += 1
        LOGGER.debug(
            "Scanned %s: %d records, %d excluded.", self._root, len(records), len(errors)
        )
        return records, errors


__all__ = ["ItemRepository"]
