"""Source tree discovery for metadata checks."""

from __future__ import annotations

import os
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    "dist",
    "coverage",
}


class SourceDirectoryError(FileNotFoundError):
    """Raised when the configured source directory does not exist."""


def matches_any(rel_path: str, patterns: Iterable[str]) -> bool:
    """Return True when ``rel_path`` matches a glob, with or without a leading slash.

    ``**/*.ts`` therefore also matches files that sit directly in the root.
    """
    anchored = f"/{rel_path}"
    for pattern in patterns:
        if fnmatch(rel_path, pattern) or fnmatch(anchored, pattern):
            return True
    return False


def _iter_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current_dir = Path(dirpath)
        for filename in sorted(filenames):
            yield current_dir / filename


def discover_files(
    root: Path,
    include: Sequence[str],
    exclude: Sequence[str] = (),
) -> List[Path]:
    """Return files under ``root`` matching ``include`` and not ``exclude``.

    The order is by relative POSIX path, so it does not depend on how the
    file system happens to list directories.
    """
    root = Path(root)
    if not root.is_dir():
        raise SourceDirectoryError(f"Source directory not found: {root}")

    matched: List[tuple[str, Path]] = []
    for path in _iter_files(root):
        rel_path = path.relative_to(root).as_posix()
        if not matches_any(rel_path, include):
            continue
        if matches_any(rel_path, exclude):
            continue
        matched.append((rel_path, path))
    matched.sort(key=lambda item: item[0])
    return [path for _, path in matched]


def expand_targets(
    targets: Iterable[Path],
    include: Sequence[str],
    exclude: Sequence[str] = (),
) -> List[Path]:
    """Resolve an explicit target list: expand directories, drop missing paths
    and declaration files, keep first occurrence order."""
    seen: set[Path] = set()
    files: List[Path] = []

    def _add(path: Path) -> None:
        key = path.resolve()
        if key in seen:
            return
        seen.add(key)
        files.append(path)

    for target in targets:
        target = Path(target)
        if target.is_dir():
            for path in discover_files(target, include, exclude):
                _add(path)
        elif target.is_file():
            if target.name.endswith(".d.ts"):
                continue
            _add(target)
    return files


__all__ = ["SourceDirectoryError", "discover_files", "expand_targets", "matches_any"]
