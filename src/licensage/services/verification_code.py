"""Tree fingerprints and file counts independent of the scanner backend."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Iterator

VCS_DIRECTORIES = frozenset({".git", ".hg", ".svn", "CVS"})
"""Version control metadata directories that are not part of the tree."""

_CHUNK_SIZE = 65_536


def iter_regular_files(
    path: Path, skip_vcs: bool = True
) -> Iterator[tuple[str, Path]]:
    """
    Yield ``(relative posix path, absolute path)`` for every regular file.

    A single file yields itself under its own name. Symbolic links are not
    followed and not reported. Order is sorted by relative path. With
    ``skip_vcs`` the contents of :data:`VCS_DIRECTORIES` are left out.
    """

    if path.is_file():
        yield path.name, path
        return

    collected: list[tuple[str, Path]] = []
    for current, dirnames, filenames in os.walk(path, followlinks=False):
        if skip_vcs:
            dirnames[:] = [name for name in dirnames if name not in VCS_DIRECTORIES]
        for filename in filenames:
            absolute = Path(current) / filename
            if absolute.is_symlink() or not absolute.is_file():
                continue
            collected.append((absolute.relative_to(path).as_posix(), absolute))
    yield from sorted(collected)


def count_files(path: Path) -> int:
    """Return the number of regular files under ``path``, VCS metadata included."""

    return sum(1 for _ in iter_regular_files(path, skip_vcs=False))


def file_sha1(path: Path) -> str:
    digest = hashlib.sha1()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def calculate_package_verification_code(path: Path) -> str:
    """
    Fingerprint the tree at ``path`` from every file's relative path and content.

    Files are visited in sorted path order, so the result does not depend on
    the traversal order of the filesystem, while renaming, adding, removing or
    editing any file changes it.
    """

    digest = hashlib.sha1()
    for relative, absolute in iter_regular_files(path):
        digest.update(relative.encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_sha1(absolute).encode("ascii"))
        digest.update(b"\n")
    return digest.hexdigest()
