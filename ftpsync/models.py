from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator


UNKNOWN_SIGNATURE = "unknown"
NO_SIGNATURE = "-"

_TOKEN_RE = re.compile(r"^(\d+)(?:_(\d+))?$")


def parent_dir(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def is_real_signature(signature: str) -> bool:
    return signature not in (UNKNOWN_SIGNATURE, NO_SIGNATURE)


@dataclass(frozen=True, slots=True)
class Timestamp:
    """Change-detection token for a local file.

    ``target_ns`` is only set for symbolic links, where ``mtime_ns`` is the
    link's own modification time and ``target_ns`` the target's.
    """

    mtime_ns: int
    target_ns: int | None = None

    @classmethod
    def plain(cls, mtime_ns: int) -> "Timestamp":
        return cls(mtime_ns=mtime_ns)

    @classmethod
    def symlink_pair(cls, link_ns: int, target_ns: int) -> "Timestamp":
        return cls(mtime_ns=link_ns, target_ns=target_ns)

    @classmethod
    def parse(cls, token: str) -> "Timestamp":
        match = _TOKEN_RE.match(token)
        if match is None:
            raise ValueError(f"Invalid timestamp token: {token!r}")
        link, target = match.groups()
        if target is None:
            return cls.plain(int(link))
        return cls.symlink_pair(int(link), int(target))

    @property
    def is_symlink(self) -> bool:
        return self.target_ns is not None

    @property
    def token(self) -> str:
        if self.target_ns is None:
            return str(self.mtime_ns)
        return f"{self.mtime_ns}_{self.target_ns}"

    def __str__(self) -> str:
        return self.token


ZERO_TIMESTAMP = Timestamp.plain(0)


@dataclass(slots=True)
class FileRecord:
    path: str
    timestamp: Timestamp
    signature: str

    @property
    def is_unknown(self) -> bool:
        return self.signature == UNKNOWN_SIGNATURE


@dataclass(frozen=True, slots=True)
class FileEntry:
    timestamp: Timestamp
    signature: str
    path: str


@dataclass(frozen=True, slots=True)
class RemoveEntry:
    path: str


LogEntry = FileEntry | RemoveEntry


class RecordedState:
    """What the remote side is believed to hold, keyed by relative path."""

    def __init__(self, records: dict[str, FileRecord] | None = None) -> None:
        self._records: dict[str, FileRecord] = {}
        self._dir_usage: Counter[str] = Counter()
        for record in (records or {}).values():
            self.set(record)

    def __contains__(self, path: object) -> bool:
        return path in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RecordedState):
            return NotImplemented
        return self._records == other._records

    def get(self, path: str) -> FileRecord | None:
        return self._records.get(path)

    def records(self) -> list[FileRecord]:
        return [self._records[path] for path in sorted(self._records)]

    def paths(self) -> set[str]:
        return set(self._records)

    def set(self, record: FileRecord) -> None:
        if record.path not in self._records:
            for directory in _ancestors(record.path):
                self._dir_usage[directory] += 1
        self._records[record.path] = record

    def remove(self, path: str) -> FileRecord | None:
        record = self._records.pop(path, None)
        if record is not None:
            for directory in _ancestors(path):
                self._dir_usage[directory] -= 1
                if self._dir_usage[directory] <= 0:
                    del self._dir_usage[directory]
        return record

    def apply(self, entry: LogEntry) -> None:
        if isinstance(entry, RemoveEntry):
            self.remove(entry.path)
        else:
            self.set(FileRecord(path=entry.path, timestamp=entry.timestamp, signature=entry.signature))

    def dir_in_use(self, directory: str) -> bool:
        return self._dir_usage.get(directory.strip("/"), 0) > 0

    def copy(self) -> "RecordedState":
        return RecordedState(dict(self._records))


def _ancestors(path: str) -> list[str]:
    parts = path.split("/")[:-1]
    return ["/".join(parts[:index]) for index in range(1, len(parts) + 1)]


@dataclass(slots=True)
class UploadCandidate:
    path: str
    timestamp: Timestamp
    signature: str
    size: int


@dataclass(slots=True)
class UploadPlan:
    candidates: list[UploadCandidate] = field(default_factory=list)
    touched: list[FileRecord] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(candidate.size for candidate in self.candidates)


@dataclass(slots=True)
class RemoteListing:
    directories: set[str] = field(default_factory=set)
    files: dict[str, int] = field(default_factory=dict)
