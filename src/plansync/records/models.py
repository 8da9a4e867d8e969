"""Data models describing parsed planning items."""

from __future__ import annotations

import re
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ItemType(str, Enum):
    """Kinds of planning items."""

    PROJECT = "project"
    EPIC = "epic"
    FEATURE = "feature"
    STORY = "story"
    BUG = "bug"
    SPEC = "spec"
    PHASE = "phase"


class Status(str, Enum):
    """Stored lifecycle status of an item.

    The first six members are lifecycle states. ``ARCHIVED`` may be stored in a
    file but never participates in transitions.
    """

    NOT_STARTED = "Not Started"
    IN_PLANNING = "In Planning"
    READY = "Ready"
    IN_PROGRESS = "In Progress"
    BLOCKED = "Blocked"
    COMPLETED = "Completed"
    ARCHIVED = "Archived"

    @classmethod
    def parse(cls, value: object) -> "Status":
        """Return the status matching ``value``.

        Accepts the display form (``"In Progress"``), the member name in any
        case (``"in_progress"``) and the name without separators
        (``"InProgress"``).

        Raises:
            ValueError: If ``value`` names no status.
        """
        if isinstance(value, Status):
            return value
        text = str(value).strip()
        compact = _compact(text)
        for member in cls:
            if text == member.value or compact == _compact(member.name):
                return member
        raise ValueError(f"Unknown status: {value!r}")


def _compact(text: str) -> str:
    return "".join(char for char in text.upper() if char.isalnum())


STATUS_ORDER: Tuple[Status, ...] = tuple(Status)
LIFECYCLE_STATUSES: Tuple[Status, ...] = tuple(s for s in Status if s is not Status.ARCHIVED)


class Priority(str, Enum):
    """Relative priority of an item."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Estimate(str, Enum):
    """T-shirt size estimate."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"


class Record(BaseModel):
    """One successfully parsed planning item.

    Attributes:
        id: Unique item identifier (``E4``, ``S36``...).
        title: Human-readable title.
        type: Item kind.
        status: Stored lifecycle status.
        priority: Item priority.
        created: Creation date.
        updated: Date of the last status change.
        path: Absolute path to the backing file.
        parent: Optional explicit parent identifier.
        dependencies: Identifiers this item depends on.
        estimate: Optional size estimate.
        spec: Optional reference to a design document for the item.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    title: str
    type: ItemType
    status: Status
    priority: Priority
    created: date
    updated: date
    path: Path
    parent: Optional[str] = None
    dependencies: Tuple[str, ...] = Field(default_factory=tuple)
    estimate: Optional[Estimate] = None
    spec: Optional[str] = None


class ParseError(BaseModel):
    """Reason a file contributes no record.

    Attributes:
        path: File that failed to parse.
        message: Human-readable description of the failure.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    message: str


ParseResult = Union[Record, ParseError]

_ITEM_ID_PATTERN = re.compile(r"^([A-Za-z]+)(\d+)$")
_PREFIX_ORDER = {"P": 0, "E": 1, "F": 2, "S": 3, "B": 4}


def item_sort_key(item_id: str) -> tuple[int, int, str]:
    """Return a sort key ordering ids by prefix (P, E, F, S, B) then number.

    Ids outside the convention sort after conventional ones, lexically.
    """
    match = _ITEM_ID_PATTERN.match(item_id)
    if match is None:
        return (len(_PREFIX_ORDER) + 1, 0, item_id)
    prefix, number = match.groups()
    rank = _PREFIX_ORDER.get(prefix.upper(), len(_PREFIX_ORDER))
    return (rank, int(number), item_id)


__all__ = [
    "ItemType",
    "Status",
    "STATUS_ORDER",
    "LIFECYCLE_STATUSES",
    "Priority",
    "Estimate",
    "Record",
    "ParseError",
    "ParseResult",
    "item_sort_key",
]
