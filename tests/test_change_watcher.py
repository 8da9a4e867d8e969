"""Tests for debounced change detection."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any

import pytest
from watchdog.events import DirCreatedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from plansync.hierarchy import HierarchyIndex, ProgressAggregator
from plansync.ingestion import ItemRepository, PlanFileScanner
from plansync.records import FrontmatterStore, ParseResult
from plansync.state import ViewStateStore
from plansync.view import RefreshEvent, ViewSyncCoordinator
from plansync.watch import (
    ChangeEvent,
    ChangeWatcher,
    Debouncer,
    GitOperationDetector,
    ManualClock,
    find_git_dir,
)
from plansync.watch.service import _PlanEventHandler


def _watcher(
    root: Path,
    clock: ManualClock | None = None,
    *,
    store: FrontmatterStore | None = None,
    **kwargs: Any,
) -> ChangeWatcher:
    repository = ItemRepository(
        root, store or FrontmatterStore(), PlanFileScanner(excluded_dirnames=(".plansync",))
    )
    coordinator = ViewSyncCoordinator(
        repository, HierarchyIndex(repository), ProgressAggregator(), ViewStateStore(root)
    )
    return ChangeWatcher(coordinator, repository, clock=clock, **kwargs)


def test_debouncer_fires_once_after_quiet_period() -> None:
    clock = ManualClock()
    debouncer = Debouncer(0.3, clock)

    assert debouncer.remaining() is None
    debouncer.trigger()
    clock.advance(0.2)
    debouncer.trigger()
    clock.advance(0.2)

    assert debouncer.consume() is False
    assert debouncer.remaining() == pytest.approx(0.1)

    clock.advance(0.11)
    assert debouncer.consume() is True
    assert debouncer.consume() is False
    assert not debouncer.pending


def test_rapid_modifications_yield_one_refresh(tmp_path: Path, write_item) -> None:
    """A burst of events inside the window produces exactly one refresh."""
    path = write_item("S1.md", "S1")
    clock = ManualClock()
    watcher = _watcher(tmp_path, clock)
    path = path.resolve()

    for _ in range(5):
        assert watcher.submit(ChangeEvent(kind="modified", path=path))
        assert watcher.pump() is None
        clock.advance(0.1)

    clock.advance(0.19)
    assert watcher.pump() is None

    clock.advance(0.02)
    refresh = watcher.pump()

    assert isinstance(refresh, RefreshEvent)
    assert refresh.reason == "filesystem"
    assert refresh.paths == (path,)
    assert watcher.received == 5
    assert watcher.pump() is None


def test_events_invalidate_frontmatter_entries(tmp_path: Path, write_item) -> None:
    path = write_item("S1.md", "S1").resolve()
    store = FrontmatterStore()
    watcher = _watcher(tmp_path, store=store)
    store.get(path)
    assert path in store

    watcher.submit(ChangeEvent(kind="modified", path=path))
    watcher.pump()

    assert path not in store


def test_queue_overflow_still_refreshes(tmp_path: Path, caplog) -> None:
    """Dropped events are replaced by a single flag that still triggers a refresh."""
    clock = ManualClock()
    watcher = _watcher(tmp_path, clock, max_pending_events=2)

    results = [
        watcher.submit(ChangeEvent(kind="created", path=tmp_path / f"S{number}.md"))
        for number in range(3)
    ]

    assert results == [True, True, False]
    assert "Change queue full" in caplog.text
    assert watcher.pump() is None
    clock.advance(0.3)
    refresh = watcher.pump()
    assert refresh is not None
    assert len(refresh.paths) == 2


def test_relevance_filter(tmp_path: Path) -> None:
    watcher = _watcher(tmp_path)
    root = watcher.root

    assert watcher.is_relevant(root / "epic-01" / "S1.md")
    assert not watcher.is_relevant(root / ".plansync" / "state.json")
    assert not watcher.is_relevant(root / ".plansync" / "S1.md")
    assert not watcher.is_relevant(root / "notes.txt")
    assert watcher.is_relevant(root / "epic-01", is_directory=True)
    assert not watcher.is_relevant(root / ".git", is_directory=True)


def test_handler_forwards_relevant_events(tmp_path: Path) -> None:
    watcher = _watcher(tmp_path)
    handler = _PlanEventHandler(watcher)
    root = watcher.root

    handler.on_modified(FileModifiedEvent(str(root / "S1.md")))
    handler.on_modified(FileModifiedEvent(str(root / "README.txt")))
    handler.on_deleted(FileDeletedEvent(str(root / "S2.md")))
    handler.on_moved(FileMovedEvent(str(root / "draft.tmp"), str(root / "S3.md")))
    handler.on_created(DirCreatedEvent(str(root / "epic-02")))

    watcher.pump()

    assert watcher.received == 3


def test_submit_during_scan_marks_repository_dirty(tmp_path: Path, write_item) -> None:
    """An event arriving mid-scan makes the repository scan again before publishing."""
    write_item("S1.md", "S1")
    submitted: list[bool] = []

    class _Store(FrontmatterStore):
        def get(self, path: Path) -> ParseResult:
            if not submitted:
                submitted.append(watcher.submit(ChangeEvent(kind="modified", path=path)))
            return super().get(path)

    repository = ItemRepository(tmp_path, _Store())
    coordinator = ViewSyncCoordinator(
        repository, HierarchyIndex(repository), ProgressAggregator(), ViewStateStore(tmp_path)
    )
    watcher = ChangeWatcher(coordinator, repository, clock=ManualClock())

    records = repository.load_all()

    assert submitted == [True]
    assert repository.scan_count == 2
    assert [record.id for record in records] == ["S1"]


def test_start_and_stop_with_real_observer(tmp_path: Path, write_item) -> None:
    """A real file edit reaches the callback through the observer thread."""
    path = write_item("S1.md", "S1")
    watcher = _watcher(tmp_path, clock=None, debounce_seconds=0.05)
    fired = threading.Event()
    received: list[RefreshEvent] = []

    def _callback(event: RefreshEvent) -> None:
        received.append(event)
        fired.set()

    watcher.start(_callback)
    try:
        assert watcher.is_running
        path.write_text(path.read_text(encoding="utf-8") + "More.\n", encoding="utf-8")
        assert fired.wait(timeout=10)
    finally:
        watcher.stop()

    assert not watcher.is_running
    assert received[0].reason == "filesystem"


def test_restart_after_stop_still_processes_events(tmp_path: Path, write_item) -> None:
    """A sentinel left by an earlier stop does not end the next run."""
    path = write_item("S1.md", "S1")
    watcher = _watcher(tmp_path, clock=None, debounce_seconds=0.05)
    fired = threading.Event()

    watcher.stop()
    watcher.start(lambda event: fired.set())
    try:
        path.write_text(path.read_text(encoding="utf-8") + "More.\n", encoding="utf-8")
        assert fired.wait(timeout=10)
    finally:
        watcher.stop()


def _git_repo(root: Path) -> Path:
    git_dir = root.resolve() / ".git"
    git_dir.mkdir()
    (git_dir / "HEAD").write_text("ref: refs/heads/main\n", encoding="utf-8")
    return git_dir


def test_find_git_dir_searches_parents(tmp_path: Path) -> None:
    git_dir = _git_repo(tmp_path)
    plans = tmp_path.resolve() / "ws" / "plans"
    plans.mkdir(parents=True)

    assert find_git_dir(plans) == git_dir
    assert find_git_dir(git_dir) == git_dir


def test_refresh_waits_for_git_lock_to_clear(tmp_path: Path, write_item, caplog) -> None:
    """While git holds its index lock, a due refresh keeps being pushed back."""
    path = write_item("S1.md", "S1").resolve()
    git_dir = _git_repo(tmp_path)
    lock = git_dir / "index.lock"
    lock.write_text("", encoding="utf-8")
    clock = ManualClock()
    detector = GitOperationDetector(git_dir, clock=clock)
    watcher = _watcher(tmp_path, clock, git_detector=detector)

    watcher.submit(ChangeEvent(kind="modified", path=path))
    assert watcher.pump() is None

    with caplog.at_level("INFO", logger="plansync.watch.service"):
        for _ in range(3):
            clock.advance(0.31)
            assert watcher.pump() is None

        lock.unlink()
        clock.advance(0.31)
        refresh = watcher.pump()

    assert refresh is not None
    assert refresh.paths == (path,)
    assert watcher.pump() is None
    assert "deferring refresh" in caplog.text
    assert "Git operation finished" in caplog.text


def test_git_head_change_opens_settle_window(tmp_path: Path, write_item) -> None:
    """A change to ``.git/HEAD`` defers refreshes until git has been quiet."""
    path = write_item("S1.md", "S1").resolve()
    git_dir = _git_repo(tmp_path)
    clock = ManualClock()
    detector = GitOperationDetector(git_dir, clock=clock, settle_seconds=0.5)
    watcher = _watcher(tmp_path, clock, git_detector=detector)
    handler = _PlanEventHandler(watcher)

    handler.on_modified(FileModifiedEvent(str(git_dir / "HEAD")))
    watcher.submit(ChangeEvent(kind="modified", path=path))
    watcher.pump()

    clock.advance(0.31)
    assert watcher.pump() is None
    assert detector.in_progress()

    clock.advance(0.31)
    refresh = watcher.pump()

    assert refresh is not None
    assert watcher.received == 1
    assert not detector.in_progress()


def test_disabled_git_detection_does_not_defer(tmp_path: Path, write_item) -> None:
    path = write_item("S1.md", "S1").resolve()
    git_dir = _git_repo(tmp_path)
    (git_dir / "index.lock").write_text("", encoding="utf-8")
    clock = ManualClock()
    detector = GitOperationDetector(git_dir, clock=clock, enabled=False)
    watcher = _watcher(tmp_path, clock, git_detector=detector)

    watcher.submit(ChangeEvent(kind="modified", path=path))
    watcher.pump()
    clock.advance(0.31)

    assert not detector.in_progress()
    assert not detector.is_activity_path(git_dir / "HEAD")
    assert watcher.pump() is not None
