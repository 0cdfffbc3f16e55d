"""Shared pytest fixtures for ftpsync tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from ftpsync.config import SyncConfig
from ftpsync.exceptions import NotFoundError, ProtocolError, TransferError


class FakeSession:
    """In-memory remote that records every call in order."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()
        self.calls: list[tuple[str, str]] = []
        self.fail_put: set[str] = set()
        self.fail_put_all = False
        self.fail_delete: set[str] = set()
        self.fail_rmdir: set[str] = set()
        self.listing: list[str] = []
        self.quit_count = 0

    def list_recursive(self) -> list[str]:
        self.calls.append(("list", ""))
        return list(self.listing)

    def put(self, local_path: Path, remote_path: str, callback=None) -> None:
        self.calls.append(("put", remote_path))
        if self.fail_put_all or remote_path in self.fail_put:
            raise TransferError(f"STOR {remote_path} failed: 451 disk full")
        data = local_path.read_bytes()
        if callback is not None:
            callback(data)
        self.files[remote_path] = data

    def delete(self, remote_path: str) -> None:
        self.calls.append(("delete", remote_path))
        if remote_path in self.fail_delete:
            raise ProtocolError(f"DELE {remote_path} failed: 530 denied")
        if remote_path not in self.files:
            raise NotFoundError(remote_path)
        del self.files[remote_path]

    def mkdir_recursive(self, directory: str) -> None:
        self.calls.append(("mkdir", directory))
        parts = directory.split("/")
        for index in range(1, len(parts) + 1):
            self.dirs.add("/".join(parts[:index]))

    def rmdir(self, directory: str) -> None:
        self.calls.append(("rmdir", directory))
        if directory in self.fail_rmdir:
            raise ProtocolError(f"RMD {directory} failed: 550 not empty")
        self.dirs.discard(directory)

    def quit(self) -> None:
        self.quit_count += 1

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "list"]


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def session_factory(fake_session: FakeSession):
    opened: list[SyncConfig] = []

    def _factory(config: SyncConfig) -> FakeSession:
        opened.append(config)
        return fake_session

    _factory.opened = opened  # type: ignore[attr-defined]
    return _factory


@pytest.fixture
def local_root(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def config(local_root: Path) -> SyncConfig:
    return SyncConfig(host="ftp.example.com", local_root=str(local_root), user="deploy")


def write_file(root: Path, relative: str, content: bytes | str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    return path
