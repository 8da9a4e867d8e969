"""Command line interface for the plansync engine."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from plansync.config import (
    ConfigError,
    ConfigManager,
    PlanSyncConfig,
    assign_nested,
    resolve_with_precedence,
)
from plansync.engine import PlanSyncEngine
from plansync.hierarchy import HierarchyNode
from plansync.log_setup import configure_logging
from plansync.view import RefreshEvent, ViewGroup, ViewMode, render_progress_bar

console = Console()

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
_MODE_CHOICES = [mode.value for mode in ViewMode]


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """
    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    raise click.ClickException(message) from original


def _load_config(
    ctx: click.Context,
    workspace: Path,
    *,
    json_output: bool,
    cli_overrides: Optional[dict[str, Any]] = None,
    log_dir: Optional[Path] = None,
) -> PlanSyncConfig:
    """Load configuration for ``workspace`` and configure logging for a command."""
    try:
        config = ConfigManager().load(workspace=workspace, cli_overrides=cli_overrides)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # pragma: no cover - _handle_cli_error always raises
    level = (ctx.obj or {}).get("log_level")
    configure_logging(config.logging, log_dir=log_dir, level_override=level)
    return config


def _resolve_quiet(
    ctx: click.Context, config: PlanSyncConfig, quiet: bool, *, json_output: bool
) -> bool:
    """Combine the --quiet flag with the configured default.

    Raises:
        click.ClickException: If --quiet is combined with --json.
    """
    explicit = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    enabled = quiet if explicit else config.cli.quiet_default
    if json_output:
        if explicit and enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        return False
    return enabled


def _emit_message(message: Any, *, quiet: bool) -> None:
    """Print ``message`` unless quiet mode is active."""
    if quiet:
        return
    console.print(message)


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _node_payload(
    engine: PlanSyncEngine,
    node: HierarchyNode,
    *,
    include_children: bool,
    show_archived: bool,
) -> dict[str, Any]:
    """Return a JSON-ready description of ``node``."""
    record = node.record
    progress = engine.get_progress(node)
    payload: dict[str, Any] = {
        "id": record.id,
        "title": record.title,
        "type": record.type.value,
        "status": record.status.value,
        "effective_status": node.effective_status.value,
        "priority": record.priority.value,
        "path": _relative(record.path, engine.workspace),
        "badge": engine.get_display_badge(node),
        "progress": (
            None
            if progress is None
            else {
                "completed": progress.completed,
                "total": progress.total,
                "percentage": progress.percentage,
            }
        ),
    }
    if include_children:
        payload["children"] = [
            _node_payload(engine, child, include_children=True, show_archived=show_archived)
            for child in engine.get_children(node, show_archived=show_archived)
        ]
    return payload


def _node_label(engine: PlanSyncEngine, node: HierarchyNode) -> str:
    return (
        f"[bold]{escape(node.id)}[/bold] {escape(node.record.title)} "
        f"[dim]{escape(engine.get_display_badge(node))}[/dim]"
    )


def _add_subtree(
    engine: PlanSyncEngine, branch: Tree, node: HierarchyNode, *, show_archived: bool
) -> None:
    child_branch = branch.add(_node_label(engine, node))
    for child in engine.get_children(node, show_archived=show_archived):
        _add_subtree(engine, child_branch, child, show_archived=show_archived)


def _render_groups(
    engine: PlanSyncEngine, groups: list[ViewGroup], mode: ViewMode, *, show_archived: bool
) -> Tree:
    tree = Tree(f"[cyan]{escape(engine.workspace.name)}[/cyan] ({mode.value} view)")
    for group in groups:
        if mode is ViewMode.HIERARCHY:
            for node in group.nodes:
                _add_subtree(engine, tree, node, show_archived=show_archived)
            continue
        branch = tree.add(f"[bold]{escape(group.label)}[/bold]")
        for node in group.nodes:
            branch.add(_node_label(engine, node))
    return tree


def _emit_parse_errors(engine: PlanSyncEngine) -> None:
    errors = engine.repository.parse_errors
    if not errors:
        return
    console.print(f"[yellow]Skipped {len(errors)} file(s) with invalid frontmatter:[/yellow]")
    for error in errors:
        console.print(
            f"  - {escape(_relative(error.path, engine.workspace))}: {escape(error.message)}"
        )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="plansync")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override the configured logging level.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: Optional[str]) -> None:
    """plansync keeps a live model of markdown planning items in sync with disk.

    Args:
        ctx: Click context shared with subcommands.
        log_level: Optional logging level override.
    """
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


@cli.command("list")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--mode", type=click.Choice(_MODE_CHOICES), help="View mode (defaults to the saved mode).")
@click.option("--show-archived", is_flag=True, help="Include archived items.")
@click.option("--json", "json_output", is_flag=True, help="Emit the groups as JSON.")
@click.pass_context
def list_items(
    ctx: click.Context,
    path: str,
    mode: Optional[str],
    show_archived: bool,
    json_output: bool,
) -> None:
    """List the items under PATH grouped by status or hierarchy.

    Args:
        ctx: Click context.
        path: Workspace root.
        mode: Optional view mode override.
        show_archived: Whether archived items are listed.
        json_output: When True, emit JSON instead of a tree.
    """
    config = _load_config(ctx, Path(path), json_output=json_output)
    with PlanSyncEngine(Path(path), config) as engine:
        target = ViewMode.parse(mode) if mode else engine.coordinator.view_mode
        archived = show_archived or engine.coordinator.show_archived
        groups = engine.list_groups(target, show_archived=archived)

        if json_output:
            console.print_json(
                data={
                    "workspace": engine.workspace.as_posix(),
                    "mode": target.value,
                    "groups": [
                        {
                            "key": group.key,
                            "label": group.label,
                            "items": [
                                _node_payload(
                                    engine,
                                    node,
                                    include_children=target is ViewMode.HIERARCHY,
                                    show_archived=archived,
                                )
                                for node in group.nodes
                            ],
                        }
                        for group in groups
                    ],
                    "errors": [
                        {"path": _relative(error.path, engine.workspace), "message": error.message}
                        for error in engine.repository.parse_errors
                    ],
                }
            )
            return

        console.print(_render_groups(engine, groups, target, show_archived=archived))
        _emit_parse_errors(engine)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.argument("item_id")
@click.option("--json", "json_output", is_flag=True, help="Emit the item as JSON.")
@click.pass_context
def show(ctx: click.Context, path: str, item_id: str, json_output: bool) -> None:
    """Show ITEM_ID from the workspace at PATH with its progress and children.

    Args:
        ctx: Click context.
        path: Workspace root.
        item_id: Identifier of the item to display.
        json_output: When True, emit JSON instead of a table.
    """
    config = _load_config(ctx, Path(path), json_output=json_output)
    with PlanSyncEngine(Path(path), config) as engine:
        node = engine.get_item(item_id)
        if node is None:
            _handle_cli_error(
                f"Item {item_id} not found in {engine.workspace}.",
                code="item_not_found",
                json_output=json_output,
            )
            return

        archived = engine.coordinator.show_archived
        if json_output:
            console.print_json(
                data=_node_payload(engine, node, include_children=True, show_archived=archived)
            )
            return

        record = node.record
        table = Table(title=f"{record.id}: {record.title}", show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Type", record.type.value)
        table.add_row("Status", engine.get_display_badge(node))
        if node.effective_status is not record.status:
            table.add_row("Stored status", record.status.value)
        table.add_row("Priority", record.priority.value)
        table.add_row("Created", record.created.isoformat())
        table.add_row("Updated", record.updated.isoformat())
        table.add_row("File", escape(_relative(record.path, engine.workspace)))
        if record.dependencies:
            table.add_row("Dependencies", ", ".join(record.dependencies))
        progress = engine.get_progress(node)
        if progress is not None:
            table.add_row("Progress", render_progress_bar(progress))
        console.print(table)

        children = engine.get_children(node)
        if children:
            console.print("[bold]Children:[/bold]")
            for child in children:
                console.print(f"  {_node_label(engine, child)}")


@cli.command("set-status")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.argument("item_id")
@click.argument("status")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def set_status(
    ctx: click.Context, path: str, item_id: str, status: str, json_output: bool, quiet: bool
) -> None:
    """Change the status of ITEM_ID to STATUS, enforcing the lifecycle rules.

    Args:
        ctx: Click context.
        path: Workspace root.
        item_id: Identifier of the item to change.
        status: Target status (e.g. "In Progress").
        json_output: When True, emit JSON.
        quiet: When True, print nothing on success.
    """
    config = _load_config(ctx, Path(path), json_output=json_output)
    quiet_enabled = _resolve_quiet(ctx, config, quiet, json_output=json_output)
    with PlanSyncEngine(Path(path), config) as engine:
        result = engine.request_status_change(item_id, status)

    if not result.accepted:
        _handle_cli_error(
            result.reason or "Status change rejected.",
            code="status_change_rejected",
            json_output=json_output,
            details={"item": item_id, "status": status},
        )
        return

    previous = result.previous_status.value if result.previous_status else None
    target = result.status.value if result.status else status
    if json_output:
        console.print_json(
            data={"item": item_id, "accepted": True, "previous_status": previous, "status": target}
        )
        return
    _emit_message(f"[green]{escape(item_id)}: {previous} -> {target}[/green]", quiet=quiet_enabled)


@cli.command("view-mode")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.argument("mode", required=False, type=click.Choice(_MODE_CHOICES))
@click.option("--quiet", is_flag=True, help="Suppress confirmation when saving MODE.")
@click.pass_context
def view_mode(ctx: click.Context, path: str, mode: Optional[str], quiet: bool) -> None:
    """Show the saved view mode for PATH, or save MODE.

    Args:
        ctx: Click context.
        path: Workspace root.
        mode: Optional mode to persist.
        quiet: When True, print nothing after saving MODE.
    """
    config = _load_config(ctx, Path(path), json_output=False)
    quiet_enabled = _resolve_quiet(ctx, config, quiet, json_output=False)
    with PlanSyncEngine(Path(path), config) as engine:
        if mode is None:
            console.print(f"View mode: [bold]{engine.coordinator.view_mode.value}[/bold]")
            return
        previous = engine.coordinator.view_mode
        engine.request_view_mode_toggle(mode)
        current = engine.coordinator.view_mode

    if current is previous:
        _emit_message(f"[yellow]View mode already {current.value}.[/yellow]", quiet=quiet_enabled)
    else:
        _emit_message(f"[green]View mode set to {current.value}.[/green]", quiet=quiet_enabled)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--json", "json_output", is_flag=True, help="Emit one JSON object per refresh.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context, path: str, debounce: Optional[float], json_output: bool, quiet: bool
) -> None:
    """Watch PATH and report every debounced refresh until interrupted.

    Args:
        ctx: Click context.
        path: Workspace root.
        debounce: Optional debounce override in seconds.
        json_output: When True, emit JSON lines instead of text.
        quiet: When True, only errors are printed.

    Raises:
        click.ClickException: If the debounce value is invalid.
    """
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    overrides = {"watch.debounce_seconds": debounce} if debounce is not None else None
    root = Path(path).expanduser().resolve()
    config = _load_config(
        ctx, root, json_output=json_output, cli_overrides=overrides, log_dir=root / ".plansync"
    )
    quiet_enabled = _resolve_quiet(ctx, config, quiet, json_output=json_output)

    engine = PlanSyncEngine(root, config)
    initial = engine.repository.load_all()

    def _report(event: RefreshEvent) -> None:
        records = engine.repository.load_all()
        if json_output:
            console.print_json(
                data={
                    "refresh": event.sequence,
                    "reason": event.reason,
                    "paths": [_relative(item, engine.workspace) for item in event.paths],
                    "items": len(records),
                    "errors": len(engine.repository.parse_errors),
                }
            )
            return
        _emit_message(
            f"[cyan]Refresh {event.sequence}: {len(records)} item(s), "
            f"{len(event.paths)} changed path(s).[/cyan]",
            quiet=quiet_enabled,
        )

    if not json_output:
        _emit_message(
            f"[cyan]Watching {engine.repository.root} ({len(initial)} item(s)). "
            "Press Ctrl+C to stop.[/cyan]",
            quiet=quiet_enabled,
        )

    try:
        engine.watcher.watch(_report)
    except KeyboardInterrupt:
        if not json_output:
            _emit_message("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet_enabled)
    except RuntimeError as exc:
        _handle_cli_error(str(exc), code="watch_runtime_error", json_output=json_output, original=exc)
    finally:
        engine.close()


@cli.group()
def config() -> None:
    """Manage plansync configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
@click.option(
    "--workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Include the overrides stored in this workspace.",
)
def config_view(no_env: bool, workspace: Optional[Path]) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.
        workspace: Optional workspace whose own config file is layered in.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    try:
        loaded = ConfigManager().load(workspace=workspace, include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'watch.debounce_seconds'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    file_data = manager.load_file_overrides()
    try:
        assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=PlanSyncConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    after = manager.read_text().splitlines()

    diff = list(
        difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The timestamp line always changes; only report real edits.
    if not any(
        line.startswith(("+", "-")) and not line.startswith(("+++", "---", "+# Last", "-# Last"))
        for line in diff
    ):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=PlanSyncConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
