"""Parsed planning items and the per-file frontmatter cache."""

from .archive import DEFAULT_ARCHIVE_DIRNAME, effective_status, is_archived_path
from .models import (
    LIFECYCLE_STATUSES,
    STATUS_ORDER,
    Estimate,
    ItemType,
    ParseError,
    ParseResult,
    Priority,
    Record,
    Status,
    item_sort_key,
)
from .parser import find_header, parse_record
from .store import FrontmatterStore

__all__ = [
    "DEFAULT_ARCHIVE_DIRNAME",
    "effective_status",
    "is_archived_path",
    "LIFECYCLE_STATUSES",
    "STATUS_ORDER",
    "Estimate",
    "ItemType",
    "ParseError",
    "ParseResult",
    "Priority",
    "Record",
    "Status",
    "item_sort_key",
    "find_header",
    "parse_record",
    "FrontmatterStore",
]
