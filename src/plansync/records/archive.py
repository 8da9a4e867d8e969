"""Archive detection and effective status projection."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Optional

from .models import Record, Status

DEFAULT_ARCHIVE_DIRNAME = "archive"


def is_archived_path(
    path: Path,
    root: Optional[Path] = None,
    archive_dirname: str = DEFAULT_ARCHIVE_DIRNAME,
) -> bool:
    """Return whether ``path`` lies inside an archive directory.

    Only whole directory components match, case-insensitively, so
    ``archive-old/`` or ``archived-items/`` do not count.

    Args:
        path: File path to inspect.
        root: Workspace root; components above it are ignored when given.
        archive_dirname: Directory name designating the archive sub-tree.

    Returns:
        bool: ``True`` when any directory component equals ``archive_dirname``.
    """
    relative = path
    if root is not None:
        try:
            relative = path.relative_to(root)
        except ValueError:
            relative = path
    parts = PurePosixPath(relative.as_posix().replace("\\", "/")).parts[:-1]
    target = archive_dirname.lower()
    return any(part.lower() == target for part in parts)


def effective_status(
    record: Record,
    root: Optional[Path] = None,
    archive_dirname: str = DEFAULT_ARCHIVE_DIRNAME,
) -> Status:
    """Return the display status of ``record`` after the archive override."""
    if record.status is Status.ARCHIVED:
        return Status.ARCHIVED
    if is_archived_path(record.path, root, archive_dirname):
        return Status.ARCHIVED
    return record.status


__all__ = ["DEFAULT_ARCHIVE_DIRNAME", "is_archived_path", "effective_status"]
