"""Command line interface for modelshelf."""

from __future__ import annotations

import difflib
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from modelshelf.config import (
    ConfigError,
    ConfigManager,
    ShelfConfig,
    assign_dotted,
    resolve_with_precedence,
)
from modelshelf.jobs import JsonlTaskQueue
from modelshelf.logging_setup import configure_logging
from modelshelf.scanning import (
    Library,
    LibraryScanner,
    LibraryUnavailable,
    ScanInProgress,
    ScanSummary,
)
from modelshelf.state import JsonRecordStore, StateError
from modelshelf.watch import WatchBatchResult, WatchService

console = Console()


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> NoReturn:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output.
        click.ClickException: For non-JSON flows.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Print ``message`` unless quiet/summary settings suppress ``mode``."""
    if quiet and mode != "error":
        return
    if summary_only and mode not in {"summary", "warning", "error"}:
        return
    console.print(message)


def _format_summary_line(command: str, root: Path | str, metrics: dict[str, Any]) -> str:
    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {root}: {parts}.[/green]"


def _load_config(
    *,
    json_output: bool,
    cli_overrides: dict[str, Any] | None = None,
) -> ShelfConfig:
    """Load configuration and install logging handlers."""
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load(cli_overrides=cli_overrides)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    configure_logging(config.logging)
    return config


def _output_modes(
    ctx: click.Context,
    config: ShelfConfig,
    *,
    json_output: bool,
    quiet: bool,
    summary_mode: bool,
) -> tuple[bool, bool]:
    """Resolve quiet/summary flags against configured defaults.

    Returns:
        tuple[bool, bool]: Effective quiet and summary-only settings.

    Raises:
        click.ClickException: If the flags conflict.
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


def _build_scanner(config: ShelfConfig) -> LibraryScanner:
    return LibraryScanner(
        JsonRecordStore(config.storage.state_dir),
        JsonlTaskQueue(config.storage.queue_file),
        options=config.scan,
    )


def _library_for(path: str, library_id: str | None) -> Library:
    library = Library.from_path(path)
    if library_id:
        library = Library(id=library_id, path=library.path)
    return library


def _summary_payload(summary: ScanSummary) -> dict[str, Any]:
    payload = summary.model_dump(mode="json")
    payload["counts"] = summary.counts()
    return payload


def _emit_summary(
    command: str,
    summary: ScanSummary,
    *,
    quiet: bool,
    summary_only: bool,
) -> None:
    """Render a scan summary as text."""
    for warning in summary.warnings:
        _emit_message(
            f"[yellow]Warning: {warning}[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )
    for model_path in summary.enqueued:
        _emit_message(
            f"  queued rescan: {model_path}",
            mode="detail",
            quiet=quiet,
            summary_only=summary_only,
        )
    _emit_message(
        _format_summary_line(command, summary.root, summary.counts()),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="modelshelf")
def cli() -> None:
    """modelshelf indexes libraries of 3D-printable model files."""


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option("--library-id", type=str, help="Override the identifier derived from PATH.")
@click.option(
    "--case-sensitive/--case-insensitive",
    "case_sensitive",
    default=None,
    help="Force the path comparison mode instead of probing the filesystem.",
)
@click.option("--json", "json_output", is_flag=True, help="Emit the scan summary as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def scan(
    ctx: click.Context,
    path: str,
    library_id: str | None,
    case_sensitive: bool | None,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Scan the library at PATH and queue rescans for new or changed models."""
    overrides = {"scan.case_sensitive": case_sensitive} if case_sensitive is not None else None
    config = _load_config(json_output=json_output, cli_overrides=overrides)
    quiet_enabled, summary_only = _output_modes(
        ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
    )

    library = _library_for(path, library_id)
    scanner = _build_scanner(config)
    try:
        summary = scanner.scan(library)
    except LibraryUnavailable as exc:
        _handle_cli_error(
            str(exc), code="library_unavailable", json_output=json_output, original=exc
        )
    except ScanInProgress as exc:
        _handle_cli_error(str(exc), code="scan_in_progress", json_output=json_output, original=exc)
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)

    if json_output:
        console.print_json(data=_summary_payload(summary))
        return
    _emit_summary("Scan", summary, quiet=quiet_enabled, summary_only=summary_only)


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option("--library-id", type=str, help="Override the identifier derived from PATH.")
@click.option("--json", "json_output", is_flag=True, help="Emit stored models as JSON.")
def status(path: str, library_id: str | None, json_output: bool) -> None:
    """Show the models recorded for the library at PATH."""
    config = _load_config(json_output=json_output)
    library = _library_for(path, library_id)
    store = JsonRecordStore(config.storage.state_dir)
    try:
        records = store.list_models(library.id)
    except StateError as exc:
        _handle_cli_error(str(exc), code="state_error", json_output=json_output, original=exc)

    if json_output:
        console.print_json(
            data={
                "library": {"id": library.id, "path": library.path.as_posix()},
                "models": [record.model_dump(mode="json") for record in records],
            }
        )
        return

    if not records:
        console.print(
            f"[yellow]No models recorded for {library.path}. "
            f"Run `modelshelf scan {library.path}` first.[/yellow]"
        )
        return

    table = Table(title=f"Models in {library.id}")
    table.add_column("Path")
    table.add_column("Files", justify="right")
    table.add_column("Fingerprint")
    table.add_column("Updated")
    for record in records:
        table.add_row(
            record.path,
            str(len(record.files)),
            (record.fingerprint or "-")[:12],
            record.updated_at.isoformat(timespec="seconds"),
        )
    console.print(table)
    console.print(f"[green]{len(records)} model(s) recorded.[/green]")


@cli.command()
@click.argument("path", type=click.Path(file_okay=False, path_type=str))
@click.option("--library-id", type=str, help="Override the identifier derived from PATH.")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def forget(path: str, library_id: str | None, yes: bool) -> None:
    """Delete every stored model record for the library at PATH."""
    config = _load_config(json_output=False)
    library = _library_for(path, library_id)
    if not yes:
        click.confirm(f"Forget all models recorded for {library.path}?", abort=True)
    store = JsonRecordStore(config.storage.state_dir)
    try:
        removed = store.drop_library(library.id)
    except StateError as exc:
        raise click.ClickException(str(exc)) from exc
    if removed:
        console.print(f"[green]Forgot library {library.id}.[/green]")
    else:
        console.print(f"[yellow]No records stored for {library.id}.[/yellow]")


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, file_okay=False, path_type=str))
@click.option("--debounce", type=float, help="Override debounce interval in seconds.")
@click.option("--once", is_flag=True, help="Scan every PATH once and exit.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing each rescan.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    paths: tuple[str, ...],
    debounce: float | None,
    once: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Rescan the libraries at PATHS whenever their files change."""
    if not paths:
        raise click.ClickException("Provide at least one PATH to monitor.")
    if debounce is not None and debounce <= 0:
        raise click.ClickException("--debounce must be greater than zero.")

    config = _load_config(json_output=json_output)
    quiet_enabled, summary_only = _output_modes(
        ctx, config, json_output=json_output, quiet=quiet, summary_mode=summary_mode
    )
    libraries = [Library.from_path(path) for path in paths]
    service = WatchService(
        _build_scanner(config),
        libraries,
        settings=config.watch,
        debounce_override=debounce,
    )

    def _emit(batch: WatchBatchResult) -> None:
        if json_output:
            payload = _summary_payload(batch.summary)
            payload["triggered_paths"] = [path.as_posix() for path in batch.triggered_paths]
            console.print_json(data=payload)
            return
        _emit_summary("Watch", batch.summary, quiet=quiet_enabled, summary_only=summary_only)

    if once:
        batches = service.process_once()
        if json_output:
            console.print_json(
                data={"batches": [_summary_payload(batch.summary) for batch in batches]}
            )
            return
        for batch in batches:
            _emit(batch)
        return

    if not json_output:
        monitored = ", ".join(str(library.path) for library in libraries)
        _emit_message(
            f"[cyan]Watching {monitored}. Press Ctrl+C to stop.[/cyan]",
            mode="detail",
            quiet=quiet_enabled,
            summary_only=summary_only,
        )
    try:
        service.watch(_emit)
    except KeyboardInterrupt:
        service.stop()
        _emit_message(
            "[yellow]Watch stopped by user request.[/yellow]",
            mode="summary",
            quiet=quiet_enabled or json_output,
            summary_only=summary_only,
        )


@cli.group()
def config() -> None:
    """Manage modelshelf configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML literal to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'scan.include_hidden'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    before = manager.read_text().splitlines()
    try:
        file_data = manager.load_file_overrides()
        assign_dotted(file_data, segments, parsed_value)
        resolve_with_precedence(defaults=ShelfConfig(), file_overrides=file_data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(file_data)
    diff = list(
        difflib.unified_diff(
            before,
            manager.read_text().splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    changed = [line for line in diff if line.startswith(("+", "-")) and "Last updated" not in line]
    if len(changed) <= 2:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return
    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


def main() -> None:
    """Invoke the click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()
