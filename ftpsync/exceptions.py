from __future__ import annotations


class FtpSyncError(Exception):
    """Base class for ftpsync errors."""


class ConfigError(FtpSyncError):
    pass


class LocalIoError(FtpSyncError):
    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class StateCorruption(FtpSyncError):
    def __init__(self, line_number: int, line: str) -> None:
        super().__init__(f"Malformed state line {line_number}: {line!r}")
        self.line_number = line_number
        self.line = line


class RemoteError(FtpSyncError):
    """Failure reported by the remote file-transfer session."""


class ConnectError(RemoteError):
    pass


class AuthError(RemoteError):
    pass


class ProtocolError(RemoteError):
    pass


class TransferError(RemoteError):
    pass


class NotFoundError(RemoteError):
    pass


class TooManyUploadFailures(FtpSyncError):
    def __init__(self, count: int) -> None:
        super().__init__(f"Aborting after {count} failed uploads")
        self.count = count
