from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from ftpsync.auditor import AuditReport, audit
from ftpsync.config import SyncConfig
from ftpsync.executor import ExecutionResult, SyncExecutor
from ftpsync.exceptions import TooManyUploadFailures
from ftpsync.filters import build_path_filter
from ftpsync.listing import parse_listing
from ftpsync.models import UploadPlan
from ftpsync.planner import plan_deletions, plan_uploads
from ftpsync.remote import SessionFactory, connect_ftp, remote_session
from ftpsync.scanner import existing_file_size, file_size, get_timestamp, scan_local_files
from ftpsync.signature import file_signature
from ftpsync.state_store import StateStore


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PushResult:
    execution: ExecutionResult
    skipped_paths: list[str]
    read_errors: list[tuple[str, str]]
    snapshot_count: int
    state_rewritten: bool

    @property
    def ok(self) -> bool:
        return self.execution.ok and not self.read_errors


@dataclass(slots=True)
class StatusResult:
    new_paths: list[str] = field(default_factory=list)
    modified_paths: list[str] = field(default_factory=list)
    deleted_paths: list[str] = field(default_factory=list)
    touched_paths: list[str] = field(default_factory=list)
    read_errors: list[tuple[str, str]] = field(default_factory=list)
    upload_bytes: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.new_paths or self.modified_paths or self.deleted_paths or self.touched_paths)


def _local_root(config: SyncConfig) -> Path:
    local_root = config.local_root_path
    if not local_root.exists():
        raise FileNotFoundError(f"Configured local_root does not exist: {local_root}")
    return local_root


def _plan_local_uploads(local_root: Path, local_paths: list[str], store: StateStore) -> UploadPlan:
    return plan_uploads(
        local_paths,
        store.state,
        timestamp_fn=lambda path: get_timestamp(local_root / path),
        signature_fn=lambda path: file_signature(local_root / path),
        size_fn=lambda path: file_size(local_root / path),
    )


def _scan(config: SyncConfig, local_root: Path, exclude_patterns: tuple[str, ...]) -> list[str]:
    path_filter = build_path_filter([*config.exclude, *exclude_patterns])
    return scan_local_files(local_root, path_filter=path_filter)


def local_status(config: SyncConfig, *, exclude_patterns: tuple[str, ...] = ()) -> StatusResult:
    """Preview what a push would do without opening a remote session."""
    local_root = _local_root(config)
    store = StateStore(config.state_path, dry_run=True)
    recorded = store.load()
    local_paths = _scan(config, local_root, exclude_patterns)

    plan = _plan_local_uploads(local_root, local_paths, store)
    return StatusResult(
        new_paths=[c.path for c in plan.candidates if c.path not in recorded],
        modified_paths=[c.path for c in plan.candidates if c.path in recorded],
        deleted_paths=plan_deletions(set(local_paths), recorded),
        touched_paths=[record.path for record in plan.touched],
        read_errors=plan.errors,
        upload_bytes=plan.total_bytes,
    )


def push_to_remote(
    config: SyncConfig,
    *,
    dry_run: bool = False,
    exclude_patterns: tuple[str, ...] = (),
    console: Console | None = None,
    session_factory: SessionFactory = connect_ftp,
) -> PushResult:
    local_root = _local_root(config)
    store = StateStore(config.state_path, dry_run=dry_run)
    store.load()

    if console is not None:
        with console.status("Discovering local files..."):
            local_paths = _scan(config, local_root, exclude_patterns)
    else:
        local_paths = _scan(config, local_root, exclude_patterns)
    local_set = set(local_paths)

    with remote_session(config, session_factory) as session:
        executor = SyncExecutor(store, session, local_root, console=console, dry_run=dry_run)
        executor.apply_deletions(plan_deletions(local_set, store.state))

        plan = _plan_local_uploads(local_root, local_paths, store)
        try:
            executor.apply_uploads(plan)
        except TooManyUploadFailures:
            logger.error("Upload failure limit reached; state log left for the next run to resume")
            raise

    rewritten = store.rewrite()
    planned = {candidate.path for candidate in plan.candidates}
    return PushResult(
        execution=executor.result,
        skipped_paths=[path for path in local_paths if path not in planned],
        read_errors=plan.errors,
        snapshot_count=len(store.state),
        state_rewritten=rewritten,
    )


def audit_remote(
    config: SyncConfig,
    *,
    skip_patterns: tuple[str, ...] = (),
    session_factory: SessionFactory = connect_ftp,
) -> AuditReport:
    local_root = config.local_root_path
    store = StateStore(config.state_path, dry_run=True)
    recorded = store.load()

    with remote_session(config, session_factory) as session:
        listing = parse_listing(session.list_recursive())

    return audit(
        recorded,
        listing,
        audit_filter=build_path_filter([*config.audit_exclude, *skip_patterns]),
        size_fn=lambda path: existing_file_size(local_root / path),
    )
