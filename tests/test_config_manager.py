"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from plansync.config import (
    ConfigError,
    ConfigManager,
    PlanSyncConfig,
    flatten_for_env,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".plansync" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "plansync configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, PlanSyncConfig)
    assert config.watch.debounce_seconds == pytest.approx(0.3)


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"watch": {"debounce_seconds": 1.5}, "cache": {"max_entries": 64}})

    env = {"PLANSYNC__WATCH__DEBOUNCE_SECONDS": "0.7", "PLANSYNC__VIEW__DEFAULT_MODE": "status"}
    cli = {"watch.debounce_seconds": 0.2}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.cache.max_entries == 64
    assert config.view.default_mode == "status"
    # CLI overrides take precedence over environment
    assert config.watch.debounce_seconds == pytest.approx(0.2)


def test_environment_is_read_from_mapping(tmp_path: Path) -> None:
    manager = ConfigManager(
        config_path=tmp_path / "config.yaml",
        env={"PLANSYNC__LOGGING__LEVEL": "DEBUG", "OTHER__LOGGING__LEVEL": "ERROR"},
    )

    config = manager.load(ensure_file=False)

    assert config.logging.level == "DEBUG"
    assert not manager.config_path.exists()


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_unknown_keys_are_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"view": {"colour": "blue"}})

    with pytest.raises(ConfigError):
        manager.load(include_env=False)


def test_flatten_for_env_round_trips_defaults() -> None:
    flat = flatten_for_env(PlanSyncConfig())

    assert flat["PLANSYNC__VIEW__DEFAULT_MODE"] == "hierarchy"
    assert flat["PLANSYNC__CACHE__MAX_ENTRIES"] == "1000"
    assert flat["PLANSYNC__WORKSPACE__ARCHIVE_DIRNAME"] == "archive"


@pytest.mark.parametrize(
    "overrides",
    [
        {"cache": {"max_entries": "not-an-int"}},
        {"watch": {"debounce_seconds": 0}},
        {"view": {"default_mode": "kanban"}},
    ],
)
def test_resolve_with_precedence_invalid_value_raises(overrides: dict) -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(defaults=PlanSyncConfig(), file_overrides=overrides)


def test_workspace_file_overrides_user_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """The workspace file sits between the user file and the environment."""
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.save({"view": {"default_mode": "status"}, "cache": {"max_entries": 10}})
    workspace = tmp_path / "project"
    workspace_config = ConfigManager.workspace_config_path(workspace)
    workspace_config.parent.mkdir(parents=True)
    workspace_config.write_text(
        "workspace:\n  plans_dirname: docs/plans\ncache:\n  max_entries: 20\n", encoding="utf-8"
    )

    config = manager.load(
        workspace=workspace, env_overrides={"PLANSYNC__CACHE__MAX_ENTRIES": "30"}
    )

    assert config.view.default_mode == "status"
    assert config.workspace.plans_dirname == "docs/plans"
    assert config.cache.max_entries == 30
    assert manager.load(workspace=workspace, include_env=False).cache.max_entries == 20


def test_missing_workspace_file_is_not_created(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    workspace = tmp_path / "project"
    workspace.mkdir()

    manager.load(workspace=workspace, include_env=False)

    assert not ConfigManager.workspace_config_path(workspace).exists()
