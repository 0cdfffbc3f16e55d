"""Durable record of what the remote side should contain.

The state file is a line-oriented log::

    FILE <timestamp> <signature> <path>
    RM <path>

Replaying the lines in order into an empty map reconstructs the recorded
state; the last line that mentions a path wins. Every remote mutation is
bracketed by appends (``FILE 0 unknown <path>`` before, the real entry after),
so a crash at any point leaves a log that replays to a safe view. At the end
of a run that changed anything the log is compacted by an atomic rewrite.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

from ftpsync.exceptions import StateCorruption
from ftpsync.models import (
    UNKNOWN_SIGNATURE,
    ZERO_TIMESTAMP,
    FileEntry,
    LogEntry,
    RecordedState,
    RemoveEntry,
    Timestamp,
)


logger = logging.getLogger(__name__)

_FILE_RE = re.compile(r"^FILE (\d+(?:_\d+)?) ([0-9a-f]{32}|-|unknown) (.+)$")
_RM_RE = re.compile(r"^RM (.+)$")


def parse_line(line: str, line_number: int = 0) -> LogEntry:
    text = line.rstrip("\r\n")
    match = _FILE_RE.match(text)
    if match is not None:
        token, signature, path = match.groups()
        return FileEntry(timestamp=Timestamp.parse(token), signature=signature, path=path)
    match = _RM_RE.match(text)
    if match is not None:
        return RemoveEntry(path=match.group(1))
    raise StateCorruption(line_number, text)


def format_entry(entry: LogEntry) -> str:
    if isinstance(entry, RemoveEntry):
        return f"RM {entry.path}"
    return f"FILE {entry.timestamp.token} {entry.signature} {entry.path}"


def replay(lines, state: RecordedState | None = None) -> RecordedState:
    state = state if state is not None else RecordedState()
    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            entry = parse_line(line, line_number)
        except StateCorruption as exc:
            logger.warning("%s; skipping", exc)
            continue
        state.apply(entry)
    return state


class StateStore:
    """Owns the recorded state and its append-only log file."""

    def __init__(self, path: Path, *, dry_run: bool = False) -> None:
        self.path = path
        self.dry_run = dry_run
        self.dirty = False
        self.state = RecordedState()

    def load(self) -> RecordedState:
        if not self.path.exists():
            logger.debug("No state file at %s; starting empty", self.path)
            self.state = RecordedState()
            return self.state
        with self.path.open("r", encoding="utf-8", newline="\n") as fh:
            self.state = replay(fh)
        logger.debug("Loaded %d recorded file(s) from %s", len(self.state), self.path)
        return self.state

    def append(self, entry: LogEntry) -> None:
        self.dirty = True
        if self.dry_run:
            return
        with self.path.open("a", encoding="utf-8", newline="\n") as fh:
            fh.write(format_entry(entry) + "\n")
            fh.flush()
            os.fsync(fh.fileno())

    def _record(self, entry: LogEntry) -> None:
        self.append(entry)
        self.state.apply(entry)

    def mark_unknown(self, path: str) -> None:
        self._record(FileEntry(timestamp=ZERO_TIMESTAMP, signature=UNKNOWN_SIGNATURE, path=path))

    def commit_file(self, path: str, timestamp: Timestamp, signature: str) -> None:
        self._record(FileEntry(timestamp=timestamp, signature=signature, path=path))

    def commit_removal(self, path: str) -> None:
        self._record(RemoveEntry(path=path))

    def rewrite(self) -> bool:
        """Compact the log into one FILE line per recorded path."""
        if not self.dirty or self.dry_run:
            return False

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f"{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                for record in self.state.records():
                    entry = FileEntry(timestamp=record.timestamp, signature=record.signature, path=record.path)
                    fh.write(format_entry(entry) + "\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        self.dirty = False
        logger.debug("Rewrote %s with %d record(s)", self.path, len(self.state))
        return True
