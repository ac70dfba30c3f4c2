"""Business rules that keep reported locations relative to the scanned root."""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Iterable

WINDOWS_ABSOLUTE_PATTERN = re.compile(r"^(?:[A-Za-z]:[\\/]|\\\\)")
"""Pattern that catches drive-letter and UNC paths in raw scanner output."""


def is_absolute(raw_path: str) -> bool:
    return raw_path.startswith("/") or bool(WINDOWS_ABSOLUTE_PATTERN.match(raw_path))


def relativize(raw_path: str, scan_root: Path) -> str | None:
    """
    Rewrite a path from raw scanner output relative to ``scan_root``.

    ``scan_root`` is the directory that was scanned, or the parent of a single
    scanned file. Returns None for paths outside the root, so callers can
    record them instead of emitting a location that leaks a foreign prefix.
    """

    if not raw_path:
        return None
    if is_absolute(raw_path):
        if WINDOWS_ABSOLUTE_PATTERN.match(raw_path):
            candidate = PurePosixPath(*PureWindowsPath(raw_path).parts)
            root = PurePosixPath(*PureWindowsPath(str(scan_root)).parts)
        else:
            candidate = PurePosixPath(raw_path)
            root = PurePosixPath(scan_root.as_posix())
        try:
            relative = candidate.relative_to(root)
        except ValueError:
            return None
    else:
        relative = PurePosixPath(raw_path.replace("\\", "/"))

    parts = [part for part in relative.parts if part not in ("", ".")]
    if not parts or ".." in parts:
        return None
    return "/".join(parts)


def leaks_directory(path: str, directories: Iterable[Path]) -> bool:
    """Return True when ``path`` contains any of the given directory prefixes."""

    for directory in directories:
        fragment = directory.as_posix().strip("/")
        if fragment and fragment in path:
            return True
    return False
