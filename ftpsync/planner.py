from __future__ import annotations

import logging
from typing import Callable, Iterable

from ftpsync.exceptions import LocalIoError
from ftpsync.models import (
    NO_SIGNATURE,
    FileRecord,
    RecordedState,
    Timestamp,
    UploadCandidate,
    UploadPlan,
    is_real_signature,
    parent_dir,
)


logger = logging.getLogger(__name__)


def plan_deletions(local_paths: set[str] | frozenset[str], recorded: RecordedState) -> list[str]:
    return sorted(path for path in recorded if path not in local_paths)


def plan_uploads(
    local_paths: Iterable[str],
    recorded: RecordedState,
    *,
    timestamp_fn: Callable[[str], Timestamp],
    signature_fn: Callable[[str], str],
    size_fn: Callable[[str], int],
) -> UploadPlan:
    """Decide which local files differ from what the remote is believed to hold.

    The recorded signature is reused when the timestamp is unchanged, so only
    files whose timestamp moved (or whose record is unconfirmed) are hashed.
    """
    plan = UploadPlan()

    for path in local_paths:
        old = recorded.get(path)
        try:
            timestamp = timestamp_fn(path)
            if old is not None and old.timestamp == timestamp and is_real_signature(old.signature):
                signature = old.signature
            else:
                signature = signature_fn(path)
        except LocalIoError as exc:
            logger.error("Cannot read %s: %s", path, exc.message)
            plan.errors.append((path, exc.message))
            continue

        old_signature = old.signature if old is not None else NO_SIGNATURE
        if signature == old_signature:
            if old is not None and old.timestamp != timestamp:
                logger.warning("%s was touched but its content is unchanged", path)
                plan.touched.append(FileRecord(path=path, timestamp=timestamp, signature=signature))
            continue

        plan.candidates.append(
            UploadCandidate(path=path, timestamp=timestamp, signature=signature, size=size_fn(path))
        )

    return plan


def directory_to_create(path: str, recorded: RecordedState) -> str | None:
    """Parent directory to create before uploading ``path``, if nothing recorded uses it yet."""
    directory = parent_dir(path)
    if not directory or recorded.dir_in_use(directory):
        return None
    return directory


def directories_to_prune(path: str, recorded: RecordedState) -> list[str]:
    """Ancestors of a removed ``path`` that no recorded file uses, innermost first."""
    pruned: list[str] = []
    directory = parent_dir(path)
    while directory and not recorded.dir_in_use(directory):
        pruned.append(directory)
        directory = parent_dir(directory)
    return pruned
