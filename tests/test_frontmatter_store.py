"""Tests for frontmatter parsing and the per-path store."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

import pytest

from plansync.records import (
    FrontmatterStore,
    ItemType,
    ParseError,
    Priority,
    Record,
    Status,
    item_sort_key,
    parse_record,
)


def _bump_mtime(path: Path) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))


def test_parse_record_builds_typed_record(tmp_path: Path, write_item) -> None:
    """A complete header yields a fully typed record."""
    path = write_item("S1.md", "S1", status="In Progress", priority="High", parent="F1")

    result = parse_record(path, path.read_text(encoding="utf-8"))

    assert isinstance(result, Record)
    assert result.id == "S1"
    assert result.type is ItemType.STORY
    assert result.status is Status.IN_PROGRESS
    assert result.priority is Priority.HIGH
    assert result.created == date(2026, 10, 1)
    assert result.parent == "F1"
    assert result.path == path


def test_parse_record_reports_missing_fields(tmp_path: Path) -> None:
    """Missing or empty required fields produce a ParseError, never a partial record."""
    text = "---\nitem: S1\ntitle: ''\ntype: story\nstatus: Ready\ncreated: 2026-10-01\n---\nbody\n"

    result = parse_record(tmp_path / "S1.md", text)

    assert isinstance(result, ParseError)
    assert "title" in result.message
    assert "priority" in result.message
    assert "updated" in result.message


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("status", "Done"),
        ("type", "task"),
        ("priority", "Urgent"),
        ("created", "10/01/2026"),
    ],
)
def test_parse_record_rejects_malformed_values(tmp_path: Path, field: str, value: str) -> None:
    """Out-of-range enum values and malformed dates are parse errors."""
    fields = {
        "item": "S1",
        "title": "Story",
        "type": "story",
        "status": "Ready",
        "priority": "Low",
        "created": "2026-10-01",
        "updated": "2026-10-02",
    }
    fields[field] = value
    header = "\n".join(f"{key}: {val}" for key, val in fields.items())

    result = parse_record(tmp_path / "S1.md", f"---\n{header}\n---\n")

    assert isinstance(result, ParseError)
    assert field in result.message


def test_parse_record_without_delimiters(tmp_path: Path) -> None:
    result = parse_record(tmp_path / "notes.md", "# Just a heading\n")

    assert isinstance(result, ParseError)
    assert "frontmatter" in result.message.lower()


def test_parse_record_accepts_id_alias_and_crlf(tmp_path: Path) -> None:
    """``id`` stands in for ``item`` and CRLF line endings are understood."""
    text = (
        "---\r\nid: B7\r\ntitle: Crash on save\r\ntype: bug\r\nstatus: Blocked\r\n"
        "priority: High\r\ncreated: '2026-09-30'\r\nupdated: 2026-10-03\r\n---\r\nbody\r\n"
    )

    result = parse_record(tmp_path / "B7.md", text)

    assert isinstance(result, Record)
    assert result.id == "B7"
    assert result.status is Status.BLOCKED
    assert result.created == date(2026, 9, 30)


def test_store_caches_until_file_changes(tmp_path: Path, write_item) -> None:
    """Repeated lookups hit the cache; a modification forces a reparse."""
    path = write_item("S1.md", "S1")
    store = FrontmatterStore()

    first = store.get(path)
    second = store.get(path)

    assert first is second
    assert store.stats.hits == 1
    assert store.stats.misses == 1

    path.write_text(path.read_text(encoding="utf-8").replace("Ready", "In Progress"), encoding="utf-8")
    _bump_mtime(path)

    third = store.get(path)

    assert isinstance(third, Record)
    assert third.status is Status.IN_PROGRESS
    assert store.stats.misses == 2


def test_store_detects_replace_with_same_size_and_mtime(tmp_path: Path, write_item) -> None:
    """A file swapped in with identical size and timestamp is still reparsed."""
    path = write_item("S1.md", "S1", status="Not Started")
    store = FrontmatterStore()
    assert store.get(path).status is Status.NOT_STARTED

    original = path.stat()
    replacement = tmp_path / "S1.md.tmp"
    replacement.write_text(
        path.read_text(encoding="utf-8").replace("Not Started", "In Progress"), encoding="utf-8"
    )
    os.utime(replacement, ns=(original.st_atime_ns, original.st_mtime_ns))
    os.replace(replacement, path)

    assert path.stat().st_size == original.st_size
    assert path.stat().st_mtime_ns == original.st_mtime_ns
    result = store.get(path)

    assert isinstance(result, Record)
    assert result.status is Status.IN_PROGRESS
    assert store.stats.misses == 2


def test_store_keeps_parse_errors_until_invalidated(tmp_path: Path, monkeypatch) -> None:
    """A cached ParseError is served again without touching the parser."""
    path = tmp_path / "broken.md"
    path.write_text("no header here\n", encoding="utf-8")
    store = FrontmatterStore()

    assert isinstance(store.get(path), ParseError)

    calls: list[Path] = []
    monkeypatch.setattr(
        "plansync.records.store.parse_record",
        lambda p, text: calls.append(p) or ParseError(path=p, message="again"),
    )

    cached = store.get(path)
    assert isinstance(cached, ParseError)
    assert calls == []

    assert store.invalidate(path) is True
    reparsed = store.get(path)
    assert isinstance(reparsed, ParseError)
    assert reparsed.message == "again"
    assert calls == [path.resolve()]


def test_store_evicts_least_recently_used(tmp_path: Path, write_item) -> None:
    store = FrontmatterStore(max_entries=2)
    first = write_item("S1.md", "S1")
    second = write_item("S2.md", "S2")
    third = write_item("S3.md", "S3")

    store.get(first)
    store.get(second)
    store.get(first)
    store.get(third)

    assert first in store
    assert second not in store
    assert third in store
    assert store.stats.evictions == 1
    assert store.stats.size == 2


def test_store_reports_missing_file(tmp_path: Path) -> None:
    result = FrontmatterStore().get(tmp_path / "gone.md")

    assert isinstance(result, ParseError)
    assert "not readable" in result.message


def test_item_sort_key_orders_by_prefix_then_number() -> None:
    ids = ["S10", "B1", "E2", "S9", "P1", "F3", "notes"]

    assert sorted(ids, key=item_sort_key) == ["P1", "E2", "F3", "S9", "S10", "B1", "notes"]


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("In Progress", Status.IN_PROGRESS),
        ("in_progress", Status.IN_PROGRESS),
        ("InProgress", Status.IN_PROGRESS),
        ("NotStarted", Status.NOT_STARTED),
        ("inplanning", Status.IN_PLANNING),
        (" Blocked ", Status.BLOCKED),
    ],
)
def test_status_parse_accepts_display_and_member_names(text: str, expected: Status) -> None:
    assert Status.parse(text) is expected


def test_status_parse_rejects_unknown_names() -> None:
    with pytest.raises(ValueError, match="Unknown status"):
        Status.parse("Done")
