"""Cache primitives shared by the derived model tiers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """Value plus validity flag for one cached computation.

    Attributes:
        value: Last computed value, or ``None`` before the first computation.
        valid: Whether ``value`` may be served without recomputation.
    """

    value: Optional[T] = None
    valid: bool = False

    def get_or_compute(self, compute: Callable[[], T]) -> T:
        """Return the cached value, recomputing it first when invalid.

        Args:
            compute: Zero-argument callable producing a fresh value.

        Returns:
            T: Cached or freshly computed value.
        """
        if not self.valid:
            self.set(compute())
        return self.value  # type: ignore[return-value]

    def set(self, value: T) -> None:
        """Store a freshly computed value and mark the entry valid."""
        self.value = value
        self.valid = True

    def invalidate(self) -> None:
        """Mark the entry stale so the next access recomputes it."""
        self.valid = False
        self.value = None


@dataclass(slots=True)
class CacheStats:
    """Counters describing cache effectiveness.

    Attributes:
        hits: Lookups served from the cache.
        misses: Lookups that required a parse.
        evictions: Entries dropped because the cache was full.
        size: Current number of cached entries.
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        """Return the fraction of lookups served from cache."""
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


__all__ = ["CacheEntry", "CacheStats"]
