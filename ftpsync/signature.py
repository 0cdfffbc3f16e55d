from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

from ftpsync.exceptions import LocalIoError


CHUNK_SIZE = 1024 * 1024


def compute_signature(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    digest = hashlib.md5()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        digest.update(chunk)
    return digest.hexdigest()


def file_signature(path: Path) -> str:
    try:
        with path.open("rb") as fh:
            return compute_signature(fh)
    except OSError as exc:
        raise LocalIoError(str(path), exc.strerror or str(exc)) from exc
