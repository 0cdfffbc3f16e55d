"""Read-only comparison of the recorded state against a live remote listing.

Findings come with remediation text (log lines to append to the state file,
or remote commands to run by hand). Nothing here mutates the state or the
remote side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from ftpsync.filters import PathFilter
from ftpsync.models import (
    NO_SIGNATURE,
    ZERO_TIMESTAMP,
    FileEntry,
    RecordedState,
    RemoteListing,
    RemoveEntry,
)
from ftpsync.state_store import format_entry


@dataclass(slots=True)
class SizeMismatch:
    path: str
    remote_size: int
    local_size: int


@dataclass(slots=True)
class AuditReport:
    unexpected_files: list[str] = field(default_factory=list)
    size_mismatches: list[SizeMismatch] = field(default_factory=list)
    unused_dirs: list[str] = field(default_factory=list)
    missing_files: list[str] = field(default_factory=list)

    @property
    def has_findings(self) -> bool:
        return bool(self.unexpected_files or self.size_mismatches or self.unused_dirs or self.missing_files)


def forget_content_line(path: str) -> str:
    return format_entry(FileEntry(timestamp=ZERO_TIMESTAMP, signature=NO_SIGNATURE, path=path))


def remove_line(path: str) -> str:
    return format_entry(RemoveEntry(path=path))


def audit(
    recorded: RecordedState,
    listing: RemoteListing,
    *,
    audit_filter: PathFilter | None = None,
    size_fn: Callable[[str], int | None],
) -> AuditReport:
    audit_filter = audit_filter or PathFilter()
    report = AuditReport()

    for path in sorted(listing.files):
        if audit_filter.excludes(path):
            continue
        record = recorded.get(path)
        if record is None:
            report.unexpected_files.append(path)
            continue
        if record.is_unknown:
            continue
        remote_size = listing.files[path]
        local_size = size_fn(path)
        if local_size is not None and remote_size != local_size:
            report.size_mismatches.append(SizeMismatch(path=path, remote_size=remote_size, local_size=local_size))

    unused = [
        directory
        for directory in listing.directories
        if not recorded.dir_in_use(directory) and not audit_filter.excludes(f"{directory}/")
    ]
    # Innermost first, so the suggested removals can be run in order.
    report.unused_dirs = sorted(unused, key=lambda directory: (-directory.count("/"), directory))

    report.missing_files = sorted(
        record.path
        for record in recorded.records()
        if record.path not in listing.files and not record.is_unknown
    )
    return report
