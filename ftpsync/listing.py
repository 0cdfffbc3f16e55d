"""Parser for recursive ``LIST -aR`` output.

The listing is a sequence of sections separated by blank lines. Each section
after the first starts with a directory header (``./<dir>:``) and contains
``ls -l`` style entries::

    drwxr-xr-x   2 owner    group        4096 Jan 12 10:31 img
    -rw-r--r--   1 owner    group         500 Jan 12  2023 logo.png

Entry fields are: mode, link count, owner, group, size, month, day, time or
year, name. ``total <n>`` lines are ignored. Anything else that is not blank
is logged as a warning and skipped.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from ftpsync.models import RemoteListing


logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(
    r"^(?P<mode>[-dlbcps][-rwxsStT]{9})[+@.]?\s+"
    r"(?P<links>\d+)\s+"
    r"(?P<owner>\S+)\s+"
    r"(?P<group>\S+)\s+"
    r"(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+(?P<day>\d{1,2})\s+(?P<time>\d{1,2}:\d{2}|\d{4})\s"
    r"(?P<name>.+)$"
)
_HEADER_RE = re.compile(r"^(?:\./)?(?P<dir>.*):$")
_TOTAL_RE = re.compile(r"^total\s+\d+$")


def _join(directory: str, name: str) -> str:
    return f"{directory}/{name}" if directory else name


def _header_dir(raw: str) -> str:
    directory = raw.strip().strip("/")
    return "" if directory in ("", ".") else directory


def parse_listing(lines: Iterable[str]) -> RemoteListing:
    listing = RemoteListing()
    current = ""

    for line_number, raw in enumerate(lines, start=1):
        line = raw.rstrip("\r\n")
        if not line.strip() or _TOTAL_RE.match(line):
            continue

        entry = _ENTRY_RE.match(line)
        if entry is not None:
            kind = entry.group("mode")[0]
            name = entry.group("name")
            if kind == "d":
                if name in (".", ".."):
                    continue
                listing.directories.add(_join(current, name))
            elif kind == "-":
                listing.files[_join(current, name)] = int(entry.group("size"))
            elif kind == "l":
                name = name.split(" -> ", 1)[0]
                listing.files[_join(current, name)] = int(entry.group("size"))
            else:
                logger.debug("Ignoring special remote entry %s", _join(current, name))
            continue

        header = _HEADER_RE.match(line)
        if header is not None:
            current = _header_dir(header.group("dir"))
            continue

        logger.warning("Cannot parse listing line %d: %r", line_number, line)

    return listing
