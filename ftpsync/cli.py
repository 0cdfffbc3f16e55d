from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from ftpsync.auditor import AuditReport, forget_content_line, remove_line
from ftpsync.config import SyncConfig, load_config, parse_host, save_config
from ftpsync.exceptions import ConfigError, FtpSyncError, LocalIoError, RemoteError, TooManyUploadFailures
from ftpsync.logger import setup_logging
from ftpsync.mirror import PushResult, audit_remote, local_status, push_to_remote
from ftpsync.remote import connect_ftp
from ftpsync.transfer_ui import format_bytes


app = typer.Typer(help="Mirror a local directory to an FTP server.")
console = Console()

# Overridden in tests to avoid real network sessions.
session_factory = connect_ftp


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    log_file: str | None = typer.Option(None, "--log-file", help="Also append log records to this file."),
) -> None:
    setup_logging(verbose=verbose, log_file=log_file)


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {path}")


def _render_failures(result: PushResult) -> None:
    failures = [(f.action, f.path, f.message) for f in result.execution.failures]
    failures.extend(("read", path, message) for path, message in result.read_errors)
    if not failures:
        return
    table = Table(title="Failures")
    table.add_column("Action")
    table.add_column("Path")
    table.add_column("Error")
    for action, path, message in failures:
        table.add_row(action, path, message)
    console.print(table)


def _render_suggestions(title: str, lines: list[str]) -> None:
    if not lines:
        return
    console.print(Text(title, style="bold red"))
    for line in lines:
        console.print(f"  {line}", markup=False, highlight=False)


def _render_audit(report: AuditReport, state_path: Path) -> None:
    _render_suggestions(
        "Audit Found Unexpected",
        [forget_content_line(path) for path in report.unexpected_files],
    )
    _render_suggestions(
        "Audit Found Size Mismatch",
        [
            f"{forget_content_line(item.path)}    # remote {item.remote_size} bytes, local {item.local_size} bytes"
            for item in report.size_mismatches
        ],
    )
    _render_suggestions(
        "Audit Found Unused Directories",
        [f"rmdir {directory}" for directory in report.unused_dirs],
    )
    _render_suggestions(
        "Audit Found Missing",
        [remove_line(path) for path in report.missing_files],
    )
    if report.has_findings:
        console.print(f"Append the suggested FILE/RM lines to {state_path} to adopt them; run rmdir by hand.")
    else:
        console.print("[green]Remote matches recorded state.[/green]")


@app.command()
def init(
    host: str = typer.Argument(..., help="host, host:port or ftp://user@host:port/remote/root"),
    user: str | None = typer.Option(None, "--user", "-u", help="Login user (default: anonymous or netrc)."),
    remote_root: str | None = typer.Option(None, "--remote-root", help="Remote directory to mirror into."),
    local_root: str | None = typer.Option(None, "--local-root", help="Local directory to mirror (default: cwd)."),
) -> None:
    """Write an ftpsync config in the current directory."""
    root = Path.cwd().resolve()
    try:
        fields = parse_host(host)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    config = SyncConfig(
        host=str(fields["host"]),
        port=int(fields["port"]),
        user=user if user is not None else str(fields.get("user", "")),
        password=str(fields.get("password", "")),
        remote_root=remote_root or str(fields.get("remote_root", "/")),
        local_root=str(Path(local_root).resolve()) if local_root else str(root),
    )
    path = save_config(config, root)
    console.print(f"[green]Initialized ftpsync[/green] for {config.host}:{config.port}{config.remote_root}")
    console.print(f"Config: {path}")
    console.print(f"State: {config.state_path}")
    if config.password:
        console.print("[yellow]Password stored in plain text; prefer FTPSYNC_PASSWORD or ~/.netrc.[/yellow]")


def _status(exclude: tuple[str, ...]) -> int:
    try:
        config = load_config()
        result = local_status(config, exclude_patterns=exclude)
    except (ConfigError, LocalIoError, FileNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1

    _render_path_summary("New", result.new_paths, "green")
    _render_path_summary("Modified", result.modified_paths, "green")
    _render_path_summary("Deleted", result.deleted_paths, "yellow")
    _render_path_summary("Touched (content unchanged)", result.touched_paths, "cyan")
    for path, message in result.read_errors:
        console.print(f"[red]Cannot read[/red] {path}: {message}")

    if not result.has_changes:
        console.print("[green]No changes detected.[/green]")
    elif result.upload_bytes:
        console.print(f"Upload size: {format_bytes(result.upload_bytes)}")
    return 1 if result.read_errors else 0


@app.command()
def status(
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s), matched against absolute local paths (repeatable).",
    ),
) -> None:
    """Show local changes compared to the recorded remote state, without connecting."""
    raise typer.Exit(code=_status(tuple(exclude or ())))


def _push(dry_run: bool, exclude: tuple[str, ...]) -> int:
    try:
        config = load_config()
        result = push_to_remote(
            config,
            dry_run=dry_run,
            exclude_patterns=exclude,
            console=console,
            session_factory=session_factory,
        )
    except KeyboardInterrupt:
        console.print("[yellow]Push interrupted.[/yellow] The next push resumes from the state log.")
        return 130
    except TooManyUploadFailures as exc:
        console.print(f"[red]{exc}.[/red] The next push resumes from the state log.")
        return 1
    except (ConfigError, FileNotFoundError) as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    except (RemoteError, LocalIoError) as exc:
        console.print(f"[red]Push failed:[/red] {exc}")
        return 1

    execution = result.execution
    if dry_run:
        console.print("[cyan]Dry run: no remote changes made, state file untouched.[/cyan]")
    else:
        _render_path_summary("Uploaded", execution.uploaded_paths, "green")
        _render_path_summary("Deleted remote", execution.deleted_paths, "yellow")
        _render_path_summary("Refreshed timestamps", execution.refreshed_paths, "cyan")
        if not execution.uploaded_paths and not execution.deleted_paths:
            console.print("[green]Remote already up to date.[/green]")
    _render_failures(result)

    console.print(f"Skipped unchanged: {len(result.skipped_paths)}")
    if result.state_rewritten:
        console.print(f"State updated: {result.snapshot_count} tracked file(s) in {config.state_path}")
    return 0 if result.ok else 1


@app.command()
def push(
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Print the plan without changing anything."),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        help="Exclude glob pattern(s), matched against absolute local paths (repeatable).",
    ),
) -> None:
    """Upload new and changed files, delete removed ones, and record the result."""
    raise typer.Exit(code=_push(dry_run, tuple(exclude or ())))


def _audit(skip: tuple[str, ...]) -> int:
    try:
        config = load_config()
        report = audit_remote(config, skip_patterns=skip, session_factory=session_factory)
    except ConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        return 1
    except FtpSyncError as exc:
        console.print(f"[red]Audit failed:[/red] {exc}")
        return 1

    _render_audit(report, config.state_path)
    return 0


@app.command()
def audit(
    skip: list[str] | None = typer.Option(
        None,
        "--skip",
        help="Glob pattern(s) for remote paths to ignore, matched against relative paths (repeatable).",
    ),
) -> None:
    """Compare the recorded state with the remote listing and suggest fixes."""
    raise typer.Exit(code=_audit(tuple(skip or ())))
