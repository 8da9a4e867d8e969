"""Facade wiring the caches, validator, writer and watcher for one workspace."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional, Union

from plansync.config import PlanSyncConfig
from plansync.hierarchy import HierarchyIndex, HierarchyNode, NodeRef, Progress, ProgressAggregator
from plansync.ingestion import ItemRepository, PlanFileScanner
from plansync.persistence import PersistenceError, PersistenceWriter
from plansync.records import FrontmatterStore, ParseError, Status
from plansync.state import DEFAULT_STATE_DIRNAME, ViewStateStore
from plansync.transitions import StatusTransitionValidator
from plansync.view import (
    ViewGroup,
    ViewMode,
    ViewSyncCoordinator,
    build_groups,
    format_badge,
    visible_nodes,
)
from plansync.watch import ChangeWatcher, Clock, GitOperationDetector, find_git_dir

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StatusChangeResult:
    """Verdict of a status change request.

    Attributes:
        item_id: Item the request targeted.
        accepted: Whether the file was rewritten.
        reason: Why the request was rejected.
        previous_status: Stored status before the request, when known.
        status: Requested status, when it could be parsed.
    """

    item_id: str
    accepted: bool
    reason: Optional[str] = None
    previous_status: Optional[Status] = None
    status: Optional[Status] = None


class PlanSyncEngine:
    """Query and command surface over one workspace of item files.

    Reads go through the cached tiers (frontmatter store, repository,
    hierarchy, progress). Status changes are validated, then written by
    ``PersistenceWriter``; the caches only pick the change up through a refresh,
    normally issued by the ``ChangeWatcher``.
    """

    def __init__(
        self,
        workspace: Path,
        config: Optional[PlanSyncConfig] = None,
        *,
        clock: Optional[Clock] = None,
        today: Optional[Callable[[], date]] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        """Wire every component for ``workspace``.

        Args:
            workspace: Workspace root. Items are read from its ``plans``
                sub-directory when present, otherwise from the root itself.
            config: Settings; defaults apply when omitted.
            clock: Time source for the watcher's debounce window.
            today: Date provider for the ``updated`` field.
            executor: Executor for view-state writes.
        """
        self._config = config or PlanSyncConfig()
        self._workspace = workspace.expanduser().resolve()
        self._clock = clock

        settings = self._config.workspace
        plans_root = self._workspace / settings.plans_dirname
        if not plans_root.is_dir():
            plans_root = self._workspace

        self.store = FrontmatterStore(max_entries=self._config.cache.max_entries)
        self.repository = ItemRepository(
            plans_root,
            self.store,
            PlanFileScanner(
                pattern=settings.file_pattern,
                recursive=self._config.watch.recursive,
                include_hidden=settings.include_hidden,
                excluded_dirnames=(DEFAULT_STATE_DIRNAME,),
            ),
        )
        self.hierarchy = HierarchyIndex(self.repository, archive_dirname=settings.archive_dirname)
        self.progress = ProgressAggregator()
        self.validator = StatusTransitionValidator()
        self.writer = PersistenceWriter(today=today or date.today)
        self.state = ViewStateStore(self._workspace)
        self.coordinator = ViewSyncCoordinator(
            self.repository,
            self.hierarchy,
            self.progress,
            self.state,
            default_mode=ViewMode.parse(self._config.view.default_mode),
            default_show_archived=self._config.view.show_archived,
            executor=executor,
        )
        self._watcher: Optional[ChangeWatcher] = None

    def __enter__(self) -> "PlanSyncEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def workspace(self) -> Path:
        """Return the workspace root."""
        return self._workspace

    @property
    def config(self) -> PlanSyncConfig:
        """Return the active settings."""
        return self._config

    # ------------------------------------------------------------------ #
    # Queries                                                            #
    # ------------------------------------------------------------------ #

    def list_groups(
        self,
        mode: Union[ViewMode, str, None] = None,
        *,
        show_archived: Optional[bool] = None,
    ) -> list[ViewGroup]:
        """Return the top-level groups for ``mode`` (the current mode by default).

        Args:
            mode: View mode to build; the persisted mode when omitted.
            show_archived: One-off override of the archived visibility setting.

        Raises:
            ValueError: If ``mode`` names no view mode.
        """
        target = self.coordinator.view_mode if mode is None else ViewMode.parse(mode)
        return build_groups(self.hierarchy, target, show_archived=self._show_archived(show_archived))

    def get_children(
        self, node: NodeRef, *, show_archived: Optional[bool] = None
    ) -> list[HierarchyNode]:
        """Return the visible structural children of ``node``."""
        return visible_nodes(
            self.hierarchy.get_children_of(node), show_archived=self._show_archived(show_archived)
        )

    def get_item(self, item_id: str) -> Optional[HierarchyNode]:
        """Return the current node for ``item_id``."""
        return self.hierarchy.node(item_id)

    def get_progress(self, node: NodeRef) -> Optional[Progress]:
        """Return the direct-children progress of ``node``."""
        current = self._current(node)
        return self.progress.calculate(current) if current is not None else None

    def get_display_badge(self, node: NodeRef) -> str:
        """Return the status text, followed by ``(completed/total)`` when known.

        Raises:
            KeyError: If ``node`` is an id that no longer exists.
        """
        current = self._current(node)
        if current is None:
            if isinstance(node, str):
                raise KeyError(node)
            current = node
        return format_badge(current.effective_status, self.progress.calculate(current))

    # ------------------------------------------------------------------ #
    # Commands                                                           #
    # ------------------------------------------------------------------ #

    def request_status_change(self, item_id: str, new_status: Union[Status, str]) -> StatusChangeResult:
        """Validate and persist a status change for ``item_id``.

        Rejections happen before any write. A successful write does not
        refresh the caches; the watcher observes the file change instead.

        Args:
            item_id: Item to change.
            new_status: Target status, as an enum member or display string.

        Returns:
            StatusChangeResult: ``accepted`` or ``rejected`` with a reason.
        """
        try:
            target = Status.parse(new_status)
        except ValueError:
            return self._reject(item_id, f"Unknown status '{new_status}'")

        record = self.repository.get(item_id)
        if record is None:
            return self._reject(item_id, f"Item {item_id} not found", status=target)

        fresh = self.store.get(record.path)
        if isinstance(fresh, ParseError):
            return self._reject(item_id, fresh.message, status=target)
        current = fresh.status

        if current is target:
            return self._reject(
                item_id, f"{item_id} is already '{current.value}'", previous=current, status=target
            )

        if not self.validator.is_valid_transition(current, target):
            allowed = self.validator.valid_next_statuses(current)
            if allowed:
                options = ", ".join(status.value for status in allowed)
                reason = (
                    f"Cannot change {item_id} from '{current.value}' to '{target.value}'. "
                    f"Valid transitions: {options}"
                )
            else:
                reason = f"'{current.value}' items cannot change status"
            return self._reject(item_id, reason, previous=current, status=target)

        try:
            self.writer.apply(fresh.path, target)
        except PersistenceError as exc:
            LOGGER.error("Status change for %s failed: %s", item_id, exc)
            return self._reject(item_id, str(exc), previous=current, status=target)

        return StatusChangeResult(
            item_id=item_id, accepted=True, previous_status=current, status=target
        )

    def request_view_mode_toggle(self, mode: Union[ViewMode, str]) -> None:
        """Switch the view mode; invalid or unchanged modes are ignored."""
        self.coordinator.set_mode(mode)

    def refresh(self) -> None:
        """Invalidate every derived cache."""
        self.coordinator.refresh(reason="manual")

    # ------------------------------------------------------------------ #
    # Watching                                                           #
    # ------------------------------------------------------------------ #

    @property
    def watcher(self) -> ChangeWatcher:
        """Return the change watcher, creating it on first access."""
        if self._watcher is None:
            settings = self._config.watch
            git_detector = GitOperationDetector(
                find_git_dir(self.repository.root) if settings.git_detection else None,
                clock=self._clock,
                settle_seconds=settings.git_settle_seconds,
                enabled=settings.git_detection,
            )
            self._watcher = ChangeWatcher(
                self.coordinator,
                self.repository,
                clock=self._clock,
                debounce_seconds=settings.debounce_seconds,
                max_pending_events=settings.max_pending_events,
                recursive=settings.recursive,
                git_detector=git_detector,
            )
        return self._watcher

    def close(self) -> None:
        """Stop the watcher and flush pending view-state writes."""
        if self._watcher is not None and self._watcher.is_running:
            self._watcher.stop()
        self.coordinator.close()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _show_archived(self, override: Optional[bool]) -> bool:
        return self.coordinator.show_archived if override is None else override

    def _current(self, node: NodeRef) -> Optional[HierarchyNode]:
        item_id = node if isinstance(node, str) else node.id
        return self.hierarchy.node(item_id)

    def _reject(
        self,
        item_id: str,
        reason: str,
        *,
        previous: Optional[Status] = None,
        status: Optional[Status] = None,
    ) -> StatusChangeResult:
        LOGGER.info("Rejected status change for %s: %s", item_id, reason)
        return StatusChangeResult(
            item_id=item_id,
            accepted=False,
            reason=reason,
            previous_status=previous,
            status=status,
        )


__all__ = ["PlanSyncEngine", "StatusChangeResult"]
