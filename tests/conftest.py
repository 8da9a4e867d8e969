"""Shared fixtures for building item files on disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

import pytest

ItemWriter = Callable[..., Path]


def render_item(
    item_id: str,
    *,
    title: Optional[str] = None,
    type: str = "story",
    status: str = "Ready",
    priority: str = "Medium",
    parent: Optional[str] = None,
    dependencies: Sequence[str] = (),
    body: str = "Body text.\n",
) -> str:
    """Return the text of an item file with a frontmatter header."""
    lines = [
        "---",
        f"item: {item_id}",
        f"title: {title or f'Item {item_id}'}",
        f"type: {type}",
        f"status: {status}",
        f"priority: {priority}",
        "created: 2026-10-01",
        "updated: 2026-10-02",
    ]
    if parent:
        lines.append(f"parent: {parent}")
    if dependencies:
        lines.append("dependencies:")
        lines.extend(f"  - {dependency}" for dependency in dependencies)
    return "\n".join(lines) + "\n---\n\n" + body


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    """Undo level and handler changes made by CLI logging setup."""
    logger = logging.getLogger("plansync")
    level = logger.level
    handlers = list(logger.handlers)
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture
def write_item(tmp_path: Path) -> ItemWriter:
    """Return a helper writing an item file relative to ``tmp_path``.

    Args:
        tmp_path: Temporary directory provided by pytest.

    Returns:
        ItemWriter: Callable taking a relative path, an item id and header fields.
    """

    def _write(relative: str, item_id: str, **fields: object) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(render_item(item_id, **fields), encoding="utf-8")  # type: ignore[arg-type]
        return path

    return _write
