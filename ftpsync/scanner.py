from __future__ import annotations

import logging
import os
from pathlib import Path

from ftpsync.config import CONFIG_FILENAME, STATE_FILENAME
from ftpsync.exceptions import LocalIoError
from ftpsync.filters import PathFilter
from ftpsync.models import Timestamp


logger = logging.getLogger(__name__)

EXCLUDED_RELATIVE_PATHS = frozenset({CONFIG_FILENAME, STATE_FILENAME})


def _is_state_leftover(relative: str) -> bool:
    # Temp file of an interrupted state rewrite, left in the local root.
    return "/" not in relative and relative.startswith(f"{STATE_FILENAME}.") and relative.endswith(".tmp")


def _is_scratch_file(name: str) -> bool:
    return name.endswith("~") or name.startswith("#") or name.startswith(".#")


def scan_local_files(
    root: Path,
    *,
    path_filter: PathFilter | None = None,
    excluded_relative: frozenset[str] | set[str] = EXCLUDED_RELATIVE_PATHS,
) -> list[str]:
    """Return the sorted relative paths of every regular file that belongs on the remote."""
    root = root.resolve()
    path_filter = path_filter or PathFilter()
    if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
        raise LocalIoError(str(root), "local root is missing or unreadable")

    def _on_error(exc: OSError) -> None:
        logger.warning("Cannot read %s: %s", exc.filename, exc.strerror)

    # Real paths of each walked directory and its ancestors. Only a directory
    # that resolves onto its own ancestor chain is a loop; aliases are walked.
    chains: dict[str, tuple[str, ...]] = {}
    found: set[str] = set()

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=True):
        real = os.path.realpath(dirpath)
        ancestors = chains.get(os.path.dirname(dirpath), ()) if dirpath != str(root) else ()
        if real in ancestors:
            logger.warning("Skipping symlink loop at %s", dirpath)
            dirnames[:] = []
            continue
        chains[dirpath] = (*ancestors, real)
        dirnames.sort()

        for name in filenames:
            if _is_scratch_file(name):
                continue
            absolute = os.path.join(dirpath, name)
            if not os.path.isfile(absolute):
                continue
            relative = Path(absolute).relative_to(root).as_posix()
            if relative in excluded_relative or _is_state_leftover(relative):
                continue
            if path_filter.excludes(Path(absolute).as_posix()):
                continue
            found.add(relative)

    return sorted(found)


def get_timestamp(path: Path) -> Timestamp:
    try:
        if path.is_symlink():
            return Timestamp.symlink_pair(path.lstat().st_mtime_ns, path.stat().st_mtime_ns)
        return Timestamp.plain(path.stat().st_mtime_ns)
    except OSError as exc:
        raise LocalIoError(str(path), exc.strerror or str(exc)) from exc


def file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError as exc:
        logger.warning("Cannot stat %s: %s", path, exc.strerror or exc)
        return 0


def existing_file_size(path: Path) -> int | None:
    """Size of ``path``, or None when there is no readable local file."""
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Cannot stat %s: %s", path, exc.strerror or exc)
        return None
