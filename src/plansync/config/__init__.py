"""Configuration management for plansync."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import (
    CacheSettings,
    LoggingSettings,
    PlanSyncConfig,
    ViewSettings,
    WatchSettings,
    WorkspaceSettings,
)
from .resolver import ENV_PREFIX, assign_nested, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.plansync/config.yaml")
WORKSPACE_CONFIG_RELPATH = Path(".plansync") / "config.yaml"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # plansync configuration file
    # Generated automatically; manage via `plansync config edit` or `plansync config set`.
    """
)


class ConfigManager:
    """Read the user and workspace configuration files and resolve settings.

    The user file lives at ``~/.plansync/config.yaml`` and is created with
    defaults on first use. A workspace may add ``.plansync/config.yaml`` under
    its root; it is only ever read, never created.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved user configuration path."""
        return self._config_path

    @staticmethod
    def workspace_config_path(workspace: Path) -> Path:
        """Return where ``workspace`` keeps its own overrides."""
        return workspace.expanduser() / WORKSPACE_CONFIG_RELPATH

    def load(
        self,
        *,
        workspace: Path | None = None,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> PlanSyncConfig:
        """Resolve settings from defaults, files, environment and CLI values.

        Args:
            workspace: Workspace whose ``.plansync/config.yaml`` is layered over
                the user file, when it exists.
            cli_overrides: Highest-precedence values, keyed by dotted path.
            include_env: Whether ``PLANSYNC__`` variables are applied.
            ensure_file: Whether the user file is created when missing.
            env_overrides: Environment mapping to use instead of the one given
                at construction.

        Returns:
            PlanSyncConfig: Validated configuration.

        Raises:
            ConfigError: If a file or any override is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        workspace_data = (
            _read_mapping(self.workspace_config_path(workspace)) if workspace is not None else None
        )
        env_data: Mapping[str, str] | None = None
        if include_env:
            env_data = env_overrides if env_overrides is not None else self._env

        return resolve_with_precedence(
            defaults=PlanSyncConfig(),
            file_overrides=_read_mapping(self._config_path),
            workspace_overrides=workspace_data,
            env_overrides=_env_overrides(env_data) if env_data else None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return raw overrides stored in the user file."""
        return _read_mapping(self._config_path)

    def save(self, config: PlanSyncConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to the user file with a header and timestamp."""
        if isinstance(config, PlanSyncConfig):
            data = config.model_dump(mode="json")
        else:
            data = dict(config)
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = yaml.safe_dump(data, sort_keys=False)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{serialized}", encoding="utf-8"
        )

    def ensure_exists(self) -> Path:
        """Create the user file with defaults if it does not exist."""
        if not self._config_path.exists():
            self.save(PlanSyncConfig())
        return self._config_path

    def read_text(self) -> str:
        """Return the current user file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse configuration file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping at the top level.")
    return raw


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``PLANSYNC__SECTION__KEY`` variables into a nested mapping."""
    overrides: dict[str, Any] = {}
    for key, raw_value in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        path = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not path:
            continue
        try:
            parsed_value = yaml.safe_load(raw_value)
        except yaml.YAMLError:
            parsed_value = raw_value
        assign_nested(overrides, path, parsed_value)
    return overrides


__all__ = [
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "WORKSPACE_CONFIG_RELPATH",
    "PlanSyncConfig",
    "WorkspaceSettings",
    "CacheSettings",
    "WatchSettings",
    "ViewSettings",
    "LoggingSettings",
    "resolve_with_precedence",
    "flatten_for_env",
    "assign_nested",
    "ConfigError",
]
