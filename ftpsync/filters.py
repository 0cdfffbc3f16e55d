from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def _match_pattern(path: str, pattern: str) -> bool:
    path_obj = PurePosixPath(path)
    norm = _normalize_pattern(pattern)
    if not norm:
        return False
    if norm.endswith("/"):
        # Directory pattern: any path below a directory of that name.
        return path.startswith(norm) or f"/{norm}" in path
    # Relative patterns match from the right, absolute ones anchor at the root.
    return path_obj.match(norm)


@dataclass(slots=True)
class PathFilter:
    exclude_patterns: tuple[str, ...] = ()

    def excludes(self, path: str) -> bool:
        return any(_match_pattern(path, pattern) for pattern in self.exclude_patterns)


def build_path_filter(exclude_patterns: list[str] | tuple[str, ...] | None = None) -> PathFilter:
    exclude = tuple(_normalize_pattern(pattern) for pattern in (exclude_patterns or []) if pattern)
    return PathFilter(exclude_patterns=exclude)
