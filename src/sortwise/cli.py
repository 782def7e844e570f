"""Command line interface for Sortwise."""

from __future__ import annotations

import difflib
import time
from pathlib import Path
from typing import Any, Iterable, Optional

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from sortwise.cleanup import CleanupScanner, DuplicateScanner
from sortwise.config import ConfigError, ConfigManager, SortwiseConfig, resolve_with_precedence
from sortwise.log import configure_logging
from sortwise.runtime import Runtime, build_runtime, make_scanner
from sortwise.state import JournalError, JournalOutcome, ProcessingStatus, UndoEntry
from sortwise.state.models import FileRecord

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

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

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    important_modes = {"summary", "warning", "error"}
    if summary_only and mode not in important_modes:
        return

    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands.

    Args:
        command: Command name to include in the summary.
        root: Target root path relevant to the command.
        metrics: Ordered mapping of metric names to values.

    Returns:
        str: Rich-formatted summary string.
    """

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _output_modes(
    ctx: click.Context,
    config: SortwiseConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Resolve quiet/summary flags against configured CLI defaults.

    Returns:
        tuple[bool, bool]: Effective quiet and summary-only modes.

    Raises:
        click.ClickException: If the requested modes conflict.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _load_config(cli_overrides: dict[str, Any] | None = None) -> tuple[ConfigManager, SortwiseConfig]:
    """Load the effective configuration and configure logging."""

    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load(cli_overrides=cli_overrides)
    configure_logging(config.logging, manager.state_dir)
    return manager, config


def _record_table(records: Iterable[FileRecord], root: Path) -> Table:
    table = Table(title=f"Classified files in {root}")
    table.add_column("File")
    table.add_column("Category")
    table.add_column("Sub-category")
    table.add_column("Confidence", justify="right")
    table.add_column("Status")
    for record in records:
        table.add_row(
            record.name,
            record.category or "-",
            record.sub_category or "-",
            f"{record.confidence:.2f}",
            record.status.value,
        )
    return table


def _entry_payload(entry: UndoEntry, outcome: Optional[JournalOutcome]) -> dict[str, Any]:
    payload = entry.model_dump(mode="json")
    payload["outcome"] = outcome.value if outcome else None
    return payload


def _assign_nested(target: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a nested value within a dictionary for a dotted path.

    Args:
        target: Mapping to mutate in-place.
        path: Sequence of keys representing the nested location.
        value: Value to assign at the nested location.

    Raises:
        ConfigError: If a non-mapping value is encountered along the path.
    """

    node = target
    for segment in path[:-1]:
        existing = node.get(segment)
        if existing is None:
            existing = {}
            node[segment] = existing
        elif not isinstance(existing, dict):
            raise ConfigError(
                f"Cannot assign into '{segment}' because it is not a mapping in the config file."
            )
        node = existing
    node[path[-1]] = value


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="sortwise")
def cli() -> None:
    """Sortwise classifies files and files them into an organized folder tree."""


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option("--organize", is_flag=True, help="Move analyzed files into the organization root.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing classified files.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(
    ctx: click.Context,
    path: str,
    recursive: bool,
    organize: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Classify the files in PATH and optionally organize them.

    Args:
        ctx: Click context used for parameter source inspection.
        path: Directory to scan.
        recursive: Whether to include subdirectories.
        organize: Whether analyzed files are moved after classification.
        json_output: If True, emit JSON describing the results.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error CLI output entirely.
    """

    json_enabled = json_output
    runtime: Optional[Runtime] = None
    try:
        _, config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        root = Path(path).expanduser().resolve()
        runtime = build_runtime(config)
        runtime.engine.reconcile()

        records = runtime.pipeline.scan_directory(root, scanner=runtime.scanner(root, recursive=recursive))
        runtime.pipeline.wait_for_ai()
        records = [runtime.store.get(record.path) or record for record in records]

        moved = 0
        if organize:
            ready = [record for record in records if record.status is ProcessingStatus.ANALYZED]
            moved = runtime.engine.organize(ready).success
            records = [runtime.store.get(record.path) or record for record in records]

        counts = {
            "files": len(records),
            "analyzed": sum(1 for record in records if record.status is ProcessingStatus.ANALYZED),
            "organized": moved,
            "skipped": sum(1 for record in records if record.status is ProcessingStatus.SKIPPED),
            "failed": sum(1 for record in records if record.status is ProcessingStatus.FAILED),
        }

        if json_output:
            console.print_json(
                data={
                    "context": {
                        "root": root.as_posix(),
                        "organization_root": runtime.organization_root.as_posix(),
                        "recursive": recursive,
                        "organize": organize,
                    },
                    "counts": counts,
                    "files": [record.model_dump(mode="json") for record in records],
                }
            )
            return

        if records:
            _emit_message(
                _record_table(records, root),
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        for record in records:
            if record.status is ProcessingStatus.FAILED:
                _emit_message(
                    f"[red]{record.name}: {record.error_message}[/red]",
                    mode="error",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
        _emit_message(
            _format_summary_line("Scan", root, counts),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except JournalError as exc:
        _handle_cli_error(str(exc), code="journal_error", json_output=json_enabled, original=exc)
    except (ValueError, RuntimeError) as exc:
        _handle_cli_error(str(exc), code="setup_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while scanning files: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    finally:
        if runtime is not None:
            runtime.close()


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("-r", "--recursive", is_flag=True, help="Monitor subdirectories too.")
@click.option(
    "--auto-organize/--no-auto-organize",
    default=None,
    help="Move ready files without confirmation (defaults to configuration).",
)
@click.option("--stabilization", type=float, help="Override the stabilization period in seconds.")
@click.option("--once", is_flag=True, help="Process current contents once and exit.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON for one-shot runs.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    paths: tuple[str, ...],
    recursive: bool,
    auto_organize: Optional[bool],
    stabilization: Optional[float],
    once: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Monitor PATHS and classify new files as they settle.

    Args:
        ctx: Click context for parameter source inspection.
        paths: One or more directories to monitor.
        recursive: Whether subdirectories are monitored.
        auto_organize: Overrides ``organization.auto_organize_enabled``.
        stabilization: Overrides ``watch.stabilization_seconds``.
        once: When True, process current contents once and exit.
        json_output: When True, emit JSON for one-shot runs.
        summary_mode: When True, restrict output to summary/warning lines.
        quiet: When True, suppress non-error output entirely.
    """

    if not paths:
        raise click.ClickException("Provide at least one PATH to monitor.")
    if stabilization is not None and stabilization <= 0:
        raise click.ClickException("--stabilization must be greater than zero.")
    if json_output and not once:
        raise click.ClickException("--json is only supported together with --once.")

    overrides: dict[str, Any] = {}
    if recursive:
        overrides["watch.recursive"] = True
    if stabilization is not None:
        overrides["watch.stabilization_seconds"] = stabilization

    runtime: Optional[Runtime] = None
    try:
        _, config = _load_config(overrides or None)
        quiet_enabled, summary_only = _output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        runtime = build_runtime(config)
        runtime.engine.reconcile()
        if not json_output:
            runtime.events.add_status_observer(
                lambda message: _emit_message(
                    f"[cyan]{message}[/cyan]",
                    mode="detail",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
            )

        roots = [Path(path).expanduser().resolve() for path in paths]
        with runtime.watcher(auto_organize=auto_organize) as watcher:
            if once:
                records = watcher.scan_once(roots)
                counts = {
                    "files": len(records),
                    "organized": sum(1 for record in records if record.status is ProcessingStatus.ORGANIZED),
                    "failed": sum(1 for record in records if record.status is ProcessingStatus.FAILED),
                }
                if json_output:
                    console.print_json(
                        data={
                            "roots": [root.as_posix() for root in roots],
                            "counts": counts,
                            "files": [record.model_dump(mode="json") for record in records],
                        }
                    )
                    return
                _emit_message(
                    _format_summary_line("Watch", ", ".join(str(root) for root in roots), counts),
                    mode="summary",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
                return

            started = [root for root in roots if watcher.start_watching(root)]
            if not started:
                raise click.ClickException("None of the given paths could be watched.")
            _emit_message(
                "[cyan]Press Ctrl+C to stop.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            try:
                while watcher.roots:
                    time.sleep(0.5)
            except KeyboardInterrupt:
                _emit_message(
                    "[yellow]Watch stopped by user request.[/yellow]",
                    mode="summary",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)
    except (ValueError, RuntimeError, JournalError) as exc:
        _handle_cli_error(str(exc), code="watch_runtime_error", json_output=json_output, original=exc)
    finally:
        if runtime is not None:
            runtime.close()


@cli.command()
@click.option("--last", "last_count", type=click.IntRange(min=1), help="Only undo the N most recent moves.")
@click.option("--dry-run", is_flag=True, help="Preview the rollback without moving files.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the rollback.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def undo(
    ctx: click.Context,
    last_count: Optional[int],
    dry_run: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Move organized files back to where they came from.

    Args:
        ctx: Click context for parameter inspection.
        last_count: Number of most recent moves to reverse; all when omitted.
        dry_run: If True, only preview the rollback operations.
        json_output: When True, emit JSON instead of textual output.
        summary_mode: When True, limit output to summary lines and warnings.
        quiet: When True, suppress non-error output entirely.
    """

    json_enabled = json_output
    runtime: Optional[Runtime] = None
    try:
        _, config = _load_config()
        quiet_enabled, summary_only = _output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        runtime = build_runtime(config)
        runtime.engine.reconcile()

        entries = runtime.journal.undoable()
        if last_count is not None:
            entries = entries[-last_count:]
        if not entries:
            if json_output:
                console.print_json(data={"dry_run": dry_run, "entries": [], "counts": {"restored": 0, "failed": 0}})
                return
            _emit_message(
                "[yellow]Nothing to undo.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return

        if dry_run:
            if json_output:
                console.print_json(
                    data={
                        "dry_run": True,
                        "entries": [_entry_payload(entry, JournalOutcome.COMMITTED) for entry in reversed(entries)],
                    }
                )
                return
            for entry in reversed(entries):
                _emit_message(
                    f"  {entry.new_path} -> {entry.original_path}",
                    mode="detail",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
            _emit_message(
                _format_summary_line("Undo", runtime.organization_root, {"planned": len(entries), "dry_run": True}),
                mode="summary",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            return

        restored, failed = runtime.engine.undo(entries)
        if json_output:
            console.print_json(
                data={
                    "dry_run": False,
                    "entries": [
                        _entry_payload(entry, runtime.journal.outcome_of(entry.entry_id))
                        for entry in reversed(entries)
                    ],
                    "counts": {"restored": restored, "failed": failed},
                }
            )
            return
        if failed:
            _emit_message(
                f"[yellow]{failed} file(s) could not be restored; see the log for details.[/yellow]",
                mode="warning",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
        _emit_message(
            _format_summary_line("Undo", runtime.organization_root, {"restored": restored, "failed": failed}),
            mode="summary",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_enabled, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_enabled, original=exc)
    except JournalError as exc:
        _handle_cli_error(str(exc), code="journal_error", json_output=json_enabled, original=exc)
    except Exception as exc:
        _handle_cli_error(
            f"Unexpected error while rolling back changes: {exc}",
            code="internal_error",
            json_output=json_enabled,
            details={"exception": type(exc).__name__},
            original=exc,
        )
    finally:
        if runtime is not None:
            runtime.close()


@cli.command()
@click.option("--reconcile", is_flag=True, help="Resolve entries left without an outcome.")
@click.option("--json", "json_output", is_flag=True, help="Emit the journal as JSON.")
def journal(reconcile: bool, json_output: bool) -> None:
    """Show the undo journal for the organization root.

    Args:
        reconcile: Whether unresolved entries are reconciled first.
        json_output: When True, emit JSON instead of a table.
    """

    runtime: Optional[Runtime] = None
    try:
        _, config = _load_config()
        runtime = build_runtime(config)
        report = runtime.engine.reconcile() if reconcile else None
        outcomes = runtime.journal.outcomes()
        entries = runtime.journal.entries()

        if json_output:
            data: dict[str, Any] = {
                "path": runtime.organization_root.as_posix(),
                "entries": [_entry_payload(entry, outcomes.get(entry.entry_id)) for entry in entries],
            }
            if report is not None:
                data["reconcile"] = {
                    "rolled_forward": len(report.rolled_forward),
                    "abandoned": len(report.abandoned),
                    "unresolved": len(report.unresolved),
                }
            console.print_json(data=data)
            return

        table = Table(title=f"Undo journal for {runtime.organization_root}")
        table.add_column("Time")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Outcome")
        for entry in entries:
            outcome = outcomes.get(entry.entry_id)
            table.add_row(
                entry.timestamp.isoformat(timespec="seconds"),
                str(entry.original_path),
                str(entry.new_path),
                outcome.value if outcome else "in-flight",
            )
        console.print(table)
        if report is not None:
            console.print(
                _format_summary_line(
                    "Reconcile",
                    runtime.organization_root,
                    {
                        "rolled_forward": len(report.rolled_forward),
                        "abandoned": len(report.abandoned),
                        "unresolved": len(report.unresolved),
                    },
                )
            )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except JournalError as exc:
        _handle_cli_error(str(exc), code="journal_error", json_output=json_output, original=exc)
    finally:
        if runtime is not None:
            runtime.close()


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option(
    "--keep",
    type=click.Choice(["earliest_created", "latest_modified"]),
    default="earliest_created",
    show_default=True,
    help="Which copy is recommended for keeping.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit duplicate groups as JSON.")
def duplicates(path: str, recursive: bool, keep: str, json_output: bool) -> None:
    """Report files under PATH with identical content. Nothing is deleted.

    Args:
        path: Directory to inspect.
        recursive: Whether to include subdirectories.
        keep: Keeper policy.
        json_output: When True, emit JSON instead of text.
    """

    try:
        _, config = _load_config()
        root = Path(path).expanduser().resolve()
        scanner = DuplicateScanner(keeper_policy=keep)  # type: ignore[arg-type]
        groups = scanner.find_in_paths(make_scanner(config, root, recursive=recursive).scan(root))
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    reclaimable = sum(group.reclaimable_bytes for group in groups)
    if json_output:
        console.print_json(
            data={
                "root": root.as_posix(),
                "groups": [group.model_dump(mode="json") for group in groups],
                "reclaimable_bytes": reclaimable,
            }
        )
        return

    for group in groups:
        console.print(f"[bold]{group.size_bytes} bytes[/bold] {group.content_hash[:12]}")
        for member in group.paths:
            marker = "keep" if member == group.keeper else "dup "
            console.print(f"  {marker} {member}")
    console.print(
        _format_summary_line(
            "Duplicates", root, {"groups": len(groups), "reclaimable_bytes": reclaimable}
        )
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("-r", "--recursive", is_flag=True, help="Include all subdirectories.")
@click.option("--json", "json_output", is_flag=True, help="Emit cleanup candidates as JSON.")
def cleanup(path: str, recursive: bool, json_output: bool) -> None:
    """Suggest files under PATH that could be cleaned up. Nothing is deleted.

    Args:
        path: Directory to inspect.
        recursive: Whether to include subdirectories.
        json_output: When True, emit JSON instead of a table.
    """

    try:
        _, config = _load_config()
        root = Path(path).expanduser().resolve()
        records: list[FileRecord] = []
        for candidate_path in make_scanner(config, root, recursive=recursive).scan(root):
            try:
                records.append(FileRecord.from_path(candidate_path))
            except OSError as exc:
                console.print(f"[yellow]Skipping {candidate_path}: {exc}[/yellow]")
        candidates = CleanupScanner(config.cleanup).find_candidates(records, root=root)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    total = sum(candidate.size_bytes for candidate in candidates)
    if json_output:
        console.print_json(
            data={
                "root": root.as_posix(),
                "candidates": [candidate.model_dump(mode="json") for candidate in candidates],
                "total_bytes": total,
            }
        )
        return

    if candidates:
        table = Table(title=f"Cleanup candidates in {root}")
        table.add_column("File")
        table.add_column("Size", justify="right")
        table.add_column("Reasons")
        table.add_column("Safety")
        for candidate in candidates:
            table.add_row(
                str(candidate.path.relative_to(root)),
                str(candidate.size_bytes),
                ", ".join(reason.value for reason in candidate.reasons),
                candidate.safety.value,
            )
        console.print(table)
    console.print(_format_summary_line("Cleanup", root, {"candidates": len(candidates), "bytes": total}))


@cli.group()
def config() -> None:
    """Manage Sortwise configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Args:
        no_env: If True, ignore environment-derived overrides.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="python"), sort_keys=False)
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
        raise click.ClickException("KEY must specify a dotted path such as 'ai.temperature'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        file_data = manager.load_file_overrides()
        _assign_nested(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=SortwiseConfig(), file_overrides=file_data)
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
    # The timestamp header always changes; only report real edits.
    if not any(
        line[:1] in "+-" and not line.startswith(("+++", "---", "+# Last updated", "-# Last updated"))
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
        resolve_with_precedence(defaults=SortwiseConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
