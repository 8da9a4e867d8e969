"""Merge configuration sources into a validated ``PlanSyncConfig``."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, Sequence

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import PlanSyncConfig

ENV_PREFIX = "PLANSYNC__"


def resolve_with_precedence(
    *,
    defaults: PlanSyncConfig,
    file_overrides: Mapping[str, Any] | None = None,
    workspace_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> PlanSyncConfig:
    """Layer overrides onto ``defaults``: user file, workspace file, environment, CLI.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the user configuration file.
        workspace_overrides: Values read from the workspace configuration file.
        env_overrides: Nested values derived from ``PLANSYNC__`` variables.
        cli_overrides: Values supplied on the command line; keys may be dotted.

    Returns:
        PlanSyncConfig: Validated configuration.

    Raises:
        ConfigError: If a source is malformed or the merged values are invalid.
    """
    merged = defaults.model_dump(mode="python")
    for name, source in (
        ("file", file_overrides),
        ("workspace", workspace_overrides),
        ("environment", env_overrides),
        ("cli", cli_overrides),
    ):
        if source is None:
            continue
        merged = _deep_merge(merged, _normalize_mapping(source, source_name=name))

    try:
        return PlanSyncConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: PlanSyncConfig) -> Dict[str, str]:
    """Flatten the config into ``PLANSYNC__SECTION__KEY`` variable mappings."""
    flat: Dict[str, str] = {}

    def _recurse(prefix: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _recurse(prefix + [str(key)], child)
            return
        env_key = ENV_PREFIX + "__".join(part.upper() for part in prefix)
        if isinstance(value, list):
            flat[env_key] = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            flat[env_key] = "null" if value is None else str(value)

    for key, value in config.model_dump(mode="json").items():
        _recurse([str(key)], value)
    return flat


def assign_nested(target: dict[str, Any], path: Sequence[str], value: Any) -> None:
    """Assign ``value`` at the nested ``path`` inside ``target``.

    Raises:
        ConfigError: If a non-mapping value sits along the path.
    """
    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(f"Cannot assign into '{segment}' because it is not a mapping.")
        node = existing
    node[path[-1]] = value


def _normalize_mapping(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in dict(source).items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = _normalize_mapping(value, source_name=source_name)
        try:
            existing = _lookup(result, key.split("."))
        except KeyError:
            existing = None
        if isinstance(existing, dict) and isinstance(value, dict):
            value = _deep_merge(existing, value)
        try:
            assign_nested(result, key.split("."), value)
        except ConfigError as exc:
            raise ConfigError(f"{source_name.capitalize()} override for {key} conflicts: {exc}") from exc
    return result


def _lookup(source: Mapping[str, Any], path: Sequence[str]) -> Any:
    node: Any = source
    for segment in path:
        if not isinstance(node, MappingABC):
            raise KeyError(segment)
        node = node[segment]
    return node


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        if isinstance(value, MappingABC) and isinstance(merged.get(key), MappingABC):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "resolve_with_precedence", "flatten_for_env", "assign_nested"]
