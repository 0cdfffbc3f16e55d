from __future__ import annotations

from dataclasses import dataclass

from rich.console import Console
from rich.filesize import decimal
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)


@dataclass(slots=True)
class TransferTaskHandle:
    task_id: TaskID
    size: int
    path: str
    sent: int = 0


class TransferProgressUI:
    """One overall bar for the push plus a transient bar per file in flight.

    Also keeps the files/bytes still to upload, which only shrink on a
    successful upload.
    """

    def __init__(self, total_files: int, total_bytes: int, console: Console | None = None) -> None:
        self.total_bytes = total_bytes
        self.remaining_files = total_files
        self.remaining_bytes = total_bytes
        self._overall: TaskID | None = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]{task.fields[action]}"),
            TextColumn("{task.fields[path]}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            console=console,
            transient=True,
            expand=True,
        )

    def __enter__(self) -> "TransferProgressUI":
        self._progress.__enter__()
        self._overall = self._progress.add_task(
            "push",
            total=self.total_bytes,
            action="PUSH",
            path=f"{self.remaining_files} file(s)",
        )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def begin(self, path: str, size: int) -> TransferTaskHandle:
        task_id = self._progress.add_task(path, total=size, action="PUT", path=path)
        return TransferTaskHandle(task_id=task_id, size=size, path=path)

    def advance(self, handle: TransferTaskHandle, delta: int) -> None:
        delta = max(0, delta)
        handle.sent += delta
        self._progress.update(handle.task_id, advance=delta)
        self._progress.update(self._overall, advance=delta)

    def finish(self, handle: TransferTaskHandle) -> None:
        # The overall bar counts the planned size even if fewer bytes were read.
        self._progress.update(self._overall, advance=handle.size - handle.sent)
        self._progress.remove_task(handle.task_id)
        self.remaining_files -= 1
        self.remaining_bytes -= handle.size
        self._progress.update(self._overall, path=f"{self.remaining_files} file(s) left")

    def fail(self, handle: TransferTaskHandle) -> None:
        self._progress.update(self._overall, advance=-handle.sent)
        self._progress.remove_task(handle.task_id)

    @property
    def remaining_percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        return round(100 * self.remaining_bytes / self.total_bytes)


def format_bytes(size: int) -> str:
    return decimal(size)
