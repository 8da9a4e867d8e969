"""Candidate file discovery."""

from __future__ import annotations

from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Iterator


def _is_hidden(path: Path) -> bool:
    return any(part.startswith(".") for part in path.parts if part not in (".", ".."))


class PlanFileScanner:
    """Enumerate item files under a root subject to discovery filters."""

    def __init__(
        self,
        *,
        pattern: str = "*.md",
        recursive: bool = True,
        include_hidden: bool = False,
        excluded_dirnames: Iterable[str] = (),
    ) -> None:
        self.pattern = pattern
        self.recursive = recursive
        self.include_hidden = include_hidden
        self.excluded_dirnames = frozenset(excluded_dirnames)

    def matches(self, path: Path, root: Path) -> bool:
        """Return whether ``path`` would be produced by ``scan(root)``.

        The file does not need to exist, so deleted paths can be classified.
        """
        try:
            relative = path.relative_to(root)
        except ValueError:
            return False
        if not fnmatch(relative.name, self.pattern):
            return False
        if not self.recursive and len(relative.parts) > 1:
            return False
        if not self.include_hidden and _is_hidden(relative):
            return False
        return not any(part in self.excluded_dirnames for part in relative.parts[:-1])

    def matches_directory(self, path: Path, root: Path) -> bool:
        """Return whether ``path`` is a directory the scan would descend into."""
        try:
            relative = path.relative_to(root)
        except ValueError:
            return False
        if not relative.parts:
            return False
        if not self.recursive:
            return False
        if not self.include_hidden and _is_hidden(relative):
            return False
        return not any(part in self.excluded_dirnames for part in relative.parts)

    def scan(self, root: Path) -> Iterator[Path]:
        """Yield candidate files under ``root`` in sorted order."""
        root = root.expanduser().resolve()
        if not root.is_dir():
            return
        for path in sorted(self._iter_paths(root)):
            if path.is_file() and self.matches(path, root):
                yield path

    def _iter_paths(self, root: Path) -> Iterable[Path]:
        if self.recursive:
            yield from root.rglob(self.pattern)
        else:
            yield from root.glob(self.pattern)
