"""Apply status changes to item files in place."""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Callable

import yaml

from plansync.records import Status, find_header

from .errors import FrontmatterFormatError, PersistenceError

LOGGER = logging.getLogger(__name__)

_WRITTEN_FIELDS = ("status", "updated")


@dataclass(slots=True)
class StatusWriteResult:
    """Outcome of a successful status write.

    Attributes:
        path: File that was rewritten.
        previous_status: Raw status value found in the header before the write.
        status: Status now stored in the file.
        updated: Date written to the ``updated`` field.
    """

    path: Path
    previous_status: str
    status: Status
    updated: date


class PersistenceWriter:
    """Rewrite the ``status`` and ``updated`` header fields of an item file.

    Only the two header lines change. Every other header line, the delimiters
    and the body are written back exactly as read. The replacement is atomic:
    readers observe either the old file or the new one.
    """

    def __init__(self, *, today: Callable[[], date] = date.today) -> None:
        """Initialize the writer.

        Args:
            today: Callable returning the date stamped into ``updated``.
        """
        self._today = today

    def apply(self, path: Path, new_status: Status) -> StatusWriteResult:
        """Set ``status`` to ``new_status`` and ``updated`` to today.

        Args:
            path: Item file to rewrite.
            new_status: Status to store.

        Returns:
            StatusWriteResult: Details of the write.

        Raises:
            FrontmatterFormatError: If the header delimiters are missing or the
                header cannot be edited safely.
            PersistenceError: If the file cannot be read or replaced.
        """
        text = self._read(path)
        header = find_header(text)
        if header is None:
            raise FrontmatterFormatError(
                f"Frontmatter delimiters not found in {path} (missing or corrupted header)"
            )

        before = self._load_header(path, header.text)
        missing = [field for field in _WRITTEN_FIELDS if field not in before]
        if missing:
            raise FrontmatterFormatError(f"Header of {path} has no {', '.join(missing)} field")

        stamp = self._today()
        edited = _replace_field(path, header.text, "status", new_status.value)
        edited = _replace_field(path, edited, "updated", stamp.isoformat())

        after = self._load_header(path, edited)
        self._verify(path, before, after, new_status, stamp)

        self._write_atomic(path, text[: header.start] + edited + text[header.end :])
        LOGGER.info("Updated %s: status %s -> %s", path, before["status"], new_status.value)
        return StatusWriteResult(
            path=path,
            previous_status=str(before["status"]),
            status=new_status,
            updated=stamp,
        )

    def _read(self, path: Path) -> str:
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceError(f"Unable to read {path}: {exc}") from exc

    def _load_header(self, path: Path, header_text: str) -> dict[str, Any]:
        try:
            data = yaml.safe_load(header_text)
        except yaml.YAMLError as exc:
            raise FrontmatterFormatError(f"Invalid YAML in header of {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise FrontmatterFormatError(f"Header of {path} is not a mapping")
        return data

    def _verify(
        self,
        path: Path,
        before: dict[str, Any],
        after: dict[str, Any],
        new_status: Status,
        stamp: date,
    ) -> None:
        if str(after.get("status")) != new_status.value or str(after.get("updated")) != stamp.isoformat():
            raise FrontmatterFormatError(f"Could not rewrite status fields of {path} safely")
        untouched_before = {key: value for key, value in before.items() if key not in _WRITTEN_FIELDS}
        untouched_after = {key: value for key, value in after.items() if key not in _WRITTEN_FIELDS}
        if untouched_before != untouched_after:
            raise FrontmatterFormatError(f"Rewriting {path} would alter other header fields")

    def _write_atomic(self, path: Path, text: str) -> None:
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            shutil.copymode(path, temp_path)
            os.replace(temp_path, path)
        except OSError as exc:
            temp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Unable to write {path}: {exc}") from exc


def _field_pattern(field: str) -> re.Pattern[str]:
    return re.compile(
        rf"^(?P<prefix>{field}[ \t]*:[ \t]*)(?P<value>[^\r\n]*?)(?P<trail>[ \t]+#[^\r\n]*|[ \t]*)(?P<eol>\r?)$",
        re.MULTILINE,
    )


def _replace_field(path: Path, header_text: str, field: str, value: str) -> str:
    match = _field_pattern(field).search(header_text)
    if match is None:
        raise FrontmatterFormatError(f"Field '{field}' in {path} is not a single top-level line")

    current = match.group("value")
    if current.startswith(("|", ">")):
        raise FrontmatterFormatError(f"Field '{field}' in {path} uses an unsupported block scalar")
    if current.startswith('"'):
        rendered = f'"{value}"'
    elif current.startswith("'"):
        rendered = f"'{value}'"
    else:
        rendered = value

    return (
        header_text[: match.start("value")]
        + rendered
        + header_text[match.end("value") :]
    )


__all__ = ["PersistenceWriter", "StatusWriteResult"]
