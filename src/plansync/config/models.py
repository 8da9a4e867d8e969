"""Configuration models describing plansync settings."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PlanSyncBaseModel(BaseModel):
    """Shared configuration for plansync Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class WorkspaceSettings(PlanSyncBaseModel):
    """Where item files live and how they are discovered.

    Attributes:
        plans_dirname: Sub-directory of the workspace holding item files. The
            workspace root itself is scanned when it does not exist.
        archive_dirname: Directory name marking the archive sub-tree.
        file_pattern: Glob pattern selecting candidate files.
        include_hidden: Whether hidden files and directories are scanned.
    """

    plans_dirname: str = "plans"
    archive_dirname: str = "archive"
    file_pattern: str = "*.md"
    include_hidden: bool = False


class CacheSettings(PlanSyncBaseModel):
    """Frontmatter cache sizing.

    Attributes:
        max_entries: Maximum number of parsed files kept in memory.
    """

    max_entries: int = Field(default=1_000, ge=1)


class WatchSettings(PlanSyncBaseModel):
    """Change watcher behavior.

    Attributes:
        debounce_seconds: Quiet period before a burst of events triggers a refresh.
        max_pending_events: Capacity of the event channel.
        recursive: Whether subdirectories are observed.
        git_detection: Whether refreshes wait while a git operation rewrites files.
        git_settle_seconds: Quiet period after the last change to `.git/HEAD` or
            `.git/index` before git counts as finished.
    """

    debounce_seconds: float = Field(default=0.3, gt=0)
    max_pending_events: int = Field(default=1_024, ge=1)
    recursive: bool = True
    git_detection: bool = True
    git_settle_seconds: float = Field(default=0.5, ge=0)


class ViewSettings(PlanSyncBaseModel):
    """Defaults for the view state.

    Attributes:
        default_mode: View mode used on first run or after a corrupt stored value.
        show_archived: Whether archived items are listed by default.
    """

    default_mode: Literal["status", "hierarchy"] = "hierarchy"
    show_archived: bool = False


class LoggingSettings(PlanSyncBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "WARNING"
    max_size_mb: int = 10
    backup_count: int = 5


class CLIOptions(PlanSyncBaseModel):
    """CLI behavior defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
    """

    quiet_default: bool = False


class PlanSyncConfig(PlanSyncBaseModel):
    """Top-level configuration struct for plansync.

    Attributes:
        workspace: File discovery settings.
        cache: Frontmatter cache settings.
        watch: Change watcher settings.
        view: View state defaults.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    watch: WatchSettings = Field(default_factory=WatchSettings)
    view: ViewSettings = Field(default_factory=ViewSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "PlanSyncBaseModel",
    "WorkspaceSettings",
    "CacheSettings",
    "WatchSettings",
    "ViewSettings",
    "LoggingSettings",
    "CLIOptions",
    "PlanSyncConfig",
]
