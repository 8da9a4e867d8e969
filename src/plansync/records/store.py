"""Per-path cache of parsed frontmatter records."""

from __future__ import annotations

import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from pathlib import Path

from plansync.cache import CacheStats

from .models import ParseError, ParseResult
from .parser import parse_record

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


@dataclass(slots=True)
class _CachedParse:
    result: ParseResult
    mtime_ns: int
    size: int
    ino: int

    def matches(self, stat: os.stat_result) -> bool:
        return (self.mtime_ns, self.size, self.ino) == (stat.st_mtime_ns, stat.st_size, stat.st_ino)


class FrontmatterStore:
    """Parse item files into records and cache the outcome per path.

    Entries are keyed on the resolved path and considered stale when the file's
    modification time, size or inode changes. Parse failures are cached as
    well, so a broken file is not re-read until it changes or is invalidated.
    The cache is bounded and evicts the least recently used path when full.
    """

    def __init__(self, *, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize an empty store.

        Args:
            max_entries: Maximum number of paths kept in the cache.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._entries: OrderedDict[Path, _CachedParse] = OrderedDict()
        self._stats = CacheStats()
        self._lock = threading.Lock()

    @property
    def stats(self) -> CacheStats:
        """Return a snapshot of the cache counters."""
        with self._lock:
            return replace(self._stats, size=len(self._entries))

    def get(self, path: Path) -> ParseResult:
        """Return the parsed record for ``path``, reparsing only when stale.

        Args:
            path: File to parse.

        Returns:
            ParseResult: The cached or freshly parsed record, or a ``ParseError``
            when the file cannot be read or its header is invalid.
        """
        key = path.expanduser().resolve()
        try:
            stat = key.stat()
        except OSError as exc:
            self.invalidate(key)
            return ParseError(path=key, message=f"File not readable: {exc}")

        with self._lock:
            cached = self._entries.get(key)
            if cached is not None and cached.matches(stat):
                self._entries.move_to_end(key)
                self._stats.hits += 1
                return cached.result
            self._stats.misses += 1

        result = self._parse(key)

        with self._lock:
            self._entries[key] = _CachedParse(
                result=result, mtime_ns=stat.st_mtime_ns, size=stat.st_size, ino=stat.st_ino
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                LOGGER.debug("Evicted %s from frontmatter cache", evicted)
        return result

    def invalidate(self, path: Path) -> bool:
        """Drop the cached entry for ``path``.

        Returns:
            bool: ``True`` if an entry was removed.
        """
        key = path.expanduser().resolve()
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every cached entry and reset the counters."""
        with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, Path):
            return False
        with self._lock:
            return path.expanduser().resolve() in self._entries

    def _parse(self, path: Path) -> ParseResult:
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return ParseError(path=path, message=f"File not readable: {exc}")
        result = parse_record(path, text)
        LOGGER.debug("Parsed %s (%s)", path, type(result).__name__)
        return result


__all__ = ["FrontmatterStore", "DEFAULT_MAX_ENTRIES"]
