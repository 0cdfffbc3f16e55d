from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from ftpsync.exceptions import (
    LocalIoError,
    NotFoundError,
    ProtocolError,
    TooManyUploadFailures,
    TransferError,
)
from ftpsync.models import UploadPlan
from ftpsync.planner import directories_to_prune, directory_to_create
from ftpsync.remote import RemoteSession
from ftpsync.state_store import StateStore
from ftpsync.transfer_ui import TransferProgressUI, format_bytes


logger = logging.getLogger(__name__)

MAX_UPLOAD_FAILURES = 4

# Per-operation failures; connection and login errors are not caught here.
_ITEM_ERRORS = (LocalIoError, ProtocolError, TransferError)


@dataclass(slots=True)
class OperationFailure:
    action: str
    path: str
    message: str


@dataclass(slots=True)
class ExecutionResult:
    deleted_paths: list[str] = field(default_factory=list)
    uploaded_paths: list[str] = field(default_factory=list)
    refreshed_paths: list[str] = field(default_factory=list)
    created_dirs: list[str] = field(default_factory=list)
    removed_dirs: list[str] = field(default_factory=list)
    failures: list[OperationFailure] = field(default_factory=list)
    upload_failures: int = 0
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures and not self.aborted


class SyncExecutor:
    """Applies deletion and upload plans to the remote, one operation at a time.

    Each remote mutation is preceded by an intent line marking the path as
    ``unknown`` and followed, on success, by the confirmed entry.
    """

    def __init__(
        self,
        store: StateStore,
        session: RemoteSession,
        local_root: Path,
        *,
        console: Console | None = None,
        dry_run: bool = False,
        max_upload_failures: int = MAX_UPLOAD_FAILURES,
    ) -> None:
        self.store = store
        self.session = session
        self.local_root = local_root
        self.console = console or Console(quiet=True)
        self.dry_run = dry_run
        self.max_upload_failures = max_upload_failures
        self.result = ExecutionResult()

    def _fail(self, action: str, path: str, exc: Exception) -> None:
        message = str(exc)
        logger.error("%s %s failed: %s", action, path, message)
        self.console.print(f"[red]{action} failed[/red] {path}: {message}")
        self.result.failures.append(OperationFailure(action=action, path=path, message=message))

    def apply_deletions(self, paths: list[str]) -> None:
        for path in paths:
            if self.dry_run:
                self.console.print(f"[yellow]Would delete[/yellow] {path}")
                self.store.commit_removal(path)
                self._prune_directories(path)
                continue

            self.store.mark_unknown(path)
            try:
                self.session.delete(path)
            except NotFoundError:
                logger.info("%s was already absent on the remote", path)
            except _ITEM_ERRORS as exc:
                self._fail("delete", path, exc)
                continue

            self.store.commit_removal(path)
            self.result.deleted_paths.append(path)
            self.console.print(f"[yellow]Deleted[/yellow] {path}")
            self._prune_directories(path)

    def _prune_directories(self, path: str) -> None:
        for directory in directories_to_prune(path, self.store.state):
            if self.dry_run:
                self.console.print(f"[yellow]Would remove directory[/yellow] {directory}")
                continue
            try:
                self.session.rmdir(directory)
            except _ITEM_ERRORS as exc:
                self._fail("rmdir", directory, exc)
                continue
            self.result.removed_dirs.append(directory)
            self.console.print(f"[yellow]Removed directory[/yellow] {directory}")

    def apply_uploads(self, plan: UploadPlan) -> None:
        for record in plan.touched:
            self.store.commit_file(record.path, record.timestamp, record.signature)
            self.result.refreshed_paths.append(record.path)

        if not plan.candidates:
            return

        total_bytes = plan.total_bytes
        verb = "Would upload" if self.dry_run else "Uploading"
        self.console.print(f"{verb} {len(plan.candidates)} file(s), {format_bytes(total_bytes)}")

        with TransferProgressUI(len(plan.candidates), total_bytes, console=self.console) as ui:
            for candidate in plan.candidates:
                directory = directory_to_create(candidate.path, self.store.state)

                if self.dry_run:
                    if directory:
                        self.console.print(f"[green]Would create directory[/green] {directory}")
                    self.console.print(
                        f"[green]Would upload[/green] {candidate.path} ({format_bytes(candidate.size)})"
                    )
                    self.store.commit_file(candidate.path, candidate.timestamp, candidate.signature)
                    continue

                if directory:
                    try:
                        self.session.mkdir_recursive(directory)
                    except _ITEM_ERRORS as exc:
                        self._fail("mkdir", directory, exc)
                    else:
                        self.result.created_dirs.append(directory)

                self.store.mark_unknown(candidate.path)
                handle = ui.begin(candidate.path, candidate.size)
                try:
                    self.session.put(
                        self.local_root / candidate.path,
                        candidate.path,
                        lambda block, h=handle: ui.advance(h, len(block)),
                    )
                except _ITEM_ERRORS as exc:
                    ui.fail(handle)
                    self._fail("upload", candidate.path, exc)
                    self.result.upload_failures += 1
                    if self.result.upload_failures >= self.max_upload_failures:
                        self.result.aborted = True
                        raise TooManyUploadFailures(self.result.upload_failures) from exc
                    continue

                ui.finish(handle)
                self.store.commit_file(candidate.path, candidate.timestamp, candidate.signature)
                self.result.uploaded_paths.append(candidate.path)
                self.console.print(
                    f"[green]Uploaded[/green] {candidate.path} "
                    f"({ui.remaining_files} left, {ui.remaining_percent}% of bytes remaining)"
                )
