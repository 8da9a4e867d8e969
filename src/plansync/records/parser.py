"""Frontmatter parsing for planning item files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from .models import Estimate, ItemType, ParseError, ParseResult, Priority, Record, Status

FRONTMATTER_PATTERN = re.compile(r"\A---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)", re.DOTALL)
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

REQUIRED_FIELDS = ("item", "title", "type", "status", "priority", "created", "updated")


@dataclass(slots=True)
class HeaderBlock:
    """Location of the YAML header inside a file's text.

    Attributes:
        text: Raw header text between the delimiters.
        start: Offset of the first header character.
        end: Offset just past the last header character.
        body_start: Offset of the first body character.
    """

    text: str
    start: int
    end: int
    body_start: int


def find_header(text: str) -> Optional[HeaderBlock]:
    """Locate the frontmatter block at the top of ``text``.

    Args:
        text: Full file contents.

    Returns:
        Optional[HeaderBlock]: Header location, or ``None`` when the delimiters
        are missing.
    """
    match = FRONTMATTER_PATTERN.match(text)
    if match is None:
        return None
    return HeaderBlock(
        text=match.group(1),
        start=match.start(1),
        end=match.end(1),
        body_start=match.end(),
    )


def parse_record(path: Path, text: str) -> ParseResult:
    """Parse file contents into a ``Record`` or a ``ParseError``.

    Args:
        path: Path the contents were read from.
        text: Full file contents.

    Returns:
        ParseResult: A fully populated record, or the reason none could be built.
    """
    header = find_header(text)
    if header is None:
        return ParseError(path=path, message="No frontmatter block found")

    try:
        data = yaml.safe_load(header.text)
    except yaml.YAMLError as exc:
        return ParseError(path=path, message=f"Invalid YAML in frontmatter: {exc}")

    if not isinstance(data, dict):
        return ParseError(path=path, message="Frontmatter must be a mapping")

    if _is_missing(data.get("item")) and not _is_missing(data.get("id")):
        data = {**data, "item": data["id"]}

    missing = [field for field in REQUIRED_FIELDS if _is_missing(data.get(field))]
    if missing:
        return ParseError(path=path, message=f"Missing required fields: {', '.join(missing)}")

    try:
        fields = _coerce_fields(data)
    except ValueError as exc:
        return ParseError(path=path, message=str(exc))

    try:
        return Record(path=path, **fields)
    except ValidationError as exc:
        return ParseError(path=path, message=f"Invalid frontmatter values: {exc}")


def _coerce_fields(data: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": _scalar_text(data["item"], "item"),
        "title": _scalar_text(data["title"], "title"),
        "type": _enum_value(ItemType, data["type"], "type"),
        "status": _enum_value(Status, data["status"], "status"),
        "priority": _enum_value(Priority, data["priority"], "priority"),
        "created": _date_value(data["created"], "created"),
        "updated": _date_value(data["updated"], "updated"),
        "parent": None if _is_missing(data.get("parent")) else _scalar_text(data["parent"], "parent"),
        "dependencies": _dependencies(data.get("dependencies")),
        "estimate": (
            None if _is_missing(data.get("estimate")) else _enum_value(Estimate, data["estimate"], "estimate")
        ),
        "spec": None if _is_missing(data.get("spec")) else _scalar_text(data["spec"], "spec"),
    }


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _scalar_text(value: Any, field: str) -> str:
    if isinstance(value, (dict, list)):
        raise ValueError(f"Field '{field}' must be a scalar value")
    return str(value).strip()


def _enum_value(enum_cls: Any, value: Any, field: str) -> Any:
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {field} '{value}'. Must be one of: {allowed}") from None


def _date_value(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _ISO_DATE_PATTERN.match(text):
        raise ValueError(f"Invalid {field} date '{value}'. Expected YYYY-MM-DD")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Invalid {field} date '{value}'. Expected YYYY-MM-DD") from None


def _dependencies(value: Any) -> tuple[str, ...]:
    if _is_missing(value):
        return ()
    if isinstance(value, str):
        return (value.strip(),)
    if not isinstance(value, list):
        raise ValueError("Field 'dependencies' must be a list of item ids")
    return tuple(_scalar_text(entry, "dependencies") for entry in value if not _is_missing(entry))


__all__ = ["FRONTMATTER_PATTERN", "REQUIRED_FIELDS", "HeaderBlock", "find_header", "parse_record"]
