from __future__ import annotations

import ftplib
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Protocol

from ftpsync.auth import resolve_password, resolve_user
from ftpsync.config import SyncConfig
from ftpsync.exceptions import (
    AuthError,
    ConnectError,
    LocalIoError,
    NotFoundError,
    ProtocolError,
    TransferError,
)


logger = logging.getLogger(__name__)

BLOCK_SIZE = 64 * 1024


class RemoteSession(Protocol):
    def list_recursive(self) -> list[str]: ...

    def put(self, local_path: Path, remote_path: str, callback: Callable[[bytes], None] | None = None) -> None: ...

    def delete(self, remote_path: str) -> None: ...

    def mkdir_recursive(self, directory: str) -> None: ...

    def rmdir(self, directory: str) -> None: ...

    def quit(self) -> None: ...


SessionFactory = Callable[[SyncConfig], RemoteSession]


def _reply_code(exc: BaseException) -> str:
    return str(exc)[:3]


class FtpSession:
    """Remote session over a single logged-in FTP control connection."""

    def __init__(self, ftp: ftplib.FTP) -> None:
        self._ftp = ftp

    def list_recursive(self) -> list[str]:
        lines: list[str] = []
        try:
            self._ftp.retrlines("LIST -aR", lines.append)
        except ftplib.all_errors as exc:
            raise ProtocolError(f"LIST failed: {exc}") from exc
        return lines

    def put(self, local_path: Path, remote_path: str, callback: Callable[[bytes], None] | None = None) -> None:
        try:
            fh = local_path.open("rb")
        except OSError as exc:
            raise LocalIoError(str(local_path), exc.strerror or str(exc)) from exc
        with fh:
            try:
                self._ftp.storbinary(f"STOR {remote_path}", fh, blocksize=BLOCK_SIZE, callback=callback)
            except ftplib.all_errors as exc:
                raise TransferError(f"STOR {remote_path} failed: {exc}") from exc

    def delete(self, remote_path: str) -> None:
        try:
            self._ftp.delete(remote_path)
        except ftplib.error_perm as exc:
            if _reply_code(exc) == "550":
                raise NotFoundError(f"{remote_path}: {exc}") from exc
            raise ProtocolError(f"DELE {remote_path} failed: {exc}") from exc
        except ftplib.all_errors as exc:
            raise ProtocolError(f"DELE {remote_path} failed: {exc}") from exc

    def mkdir_recursive(self, directory: str) -> None:
        parts = [part for part in directory.split("/") if part]
        for index in range(1, len(parts) + 1):
            prefix = "/".join(parts[:index])
            try:
                self._ftp.mkd(prefix)
            except ftplib.error_perm as exc:
                # 550/521: already exists. Anything else is a real failure.
                if _reply_code(exc) not in {"550", "521"}:
                    raise ProtocolError(f"MKD {prefix} failed: {exc}") from exc
            except ftplib.all_errors as exc:
                raise ProtocolError(f"MKD {prefix} failed: {exc}") from exc

    def rmdir(self, directory: str) -> None:
        try:
            self._ftp.rmd(directory)
        except ftplib.all_errors as exc:
            raise ProtocolError(f"RMD {directory} failed: {exc}") from exc

    def quit(self) -> None:
        try:
            self._ftp.quit()
        except ftplib.all_errors as exc:
            self._ftp.close()
            raise ProtocolError(f"QUIT failed: {exc}") from exc


def connect_ftp(config: SyncConfig) -> FtpSession:
    ftp = ftplib.FTP(timeout=config.timeout)
    try:
        ftp.connect(config.host, config.port)
    except ftplib.all_errors as exc:
        ftp.close()
        raise ConnectError(f"Cannot connect to {config.host}:{config.port}: {exc}") from exc

    user = resolve_user(config)
    try:
        ftp.login(user, resolve_password(config))
    except ftplib.all_errors as exc:
        ftp.close()
        raise AuthError(f"Login as {user} on {config.host} failed: {exc}") from exc

    try:
        ftp.voidcmd("TYPE I")
        if config.remote_root != "/":
            ftp.cwd(config.remote_root)
    except ftplib.all_errors as exc:
        ftp.close()
        raise ProtocolError(f"Session setup on {config.host} failed: {exc}") from exc

    logger.info("Connected to %s:%s as %s", config.host, config.port, user)
    return FtpSession(ftp)


class LazySession:
    """Delegating session that connects on first use."""

    def __init__(self, config: SyncConfig, factory: SessionFactory = connect_ftp) -> None:
        self._config = config
        self._factory = factory
        self._session: RemoteSession | None = None

    @property
    def connected(self) -> bool:
        return self._session is not None

    def _get(self) -> RemoteSession:
        if self._session is None:
            try:
                self._session = self._factory(self._config)
            except ProtocolError as exc:
                raise ConnectError(str(exc)) from exc
        return self._session

    def list_recursive(self) -> list[str]:
        return self._get().list_recursive()

    def put(self, local_path: Path, remote_path: str, callback: Callable[[bytes], None] | None = None) -> None:
        self._get().put(local_path, remote_path, callback)

    def delete(self, remote_path: str) -> None:
        self._get().delete(remote_path)

    def mkdir_recursive(self, directory: str) -> None:
        self._get().mkdir_recursive(directory)

    def rmdir(self, directory: str) -> None:
        self._get().rmdir(directory)

    def quit(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.quit()


@contextmanager
def remote_session(config: SyncConfig, factory: SessionFactory = connect_ftp) -> Iterator[LazySession]:
    session = LazySession(config, factory)
    try:
        yield session
    finally:
        try:
            session.quit()
        except ProtocolError as exc:
            logger.warning("%s", exc)
