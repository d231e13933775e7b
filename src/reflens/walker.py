"""Directory traversal shared by the in-process strategies."""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Collection, Iterator

logger = logging.getLogger(__name__)


def is_excluded_path(path: str | Path, root: str | Path, excluded_dirs: Collection[str]) -> bool:
    """Check whether any directory component of path below root is excluded.

    Only the components between root and the file name are inspected, so a
    root that itself lives under e.g. ``build/`` is still searchable.
    """
    try:
        relative = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        relative = str(path)
    parts = Path(relative).parts[:-1]
    return any(part in excluded_dirs for part in parts)


def iter_files(
    root: str | Path,
    extensions: Collection[str],
    excluded_dirs: Collection[str],
) -> Iterator[Path]:
    """Yield files under root whose suffix is in extensions.

    Directories whose name is in excluded_dirs are skipped. Entries are
    visited in sorted name order. Unreadable entries are logged and skipped.

    Directory names are the walk keys and symlinked directories are followed
    without resolving real paths, so a symlink cycle is only cut short when the
    operating system refuses the ever-longer path.
    """
    directory = Path(root)
    try:
        names = sorted(os.listdir(directory))
    except OSError as exc:
        logger.warning("Error listing directory %s: %s", directory, exc)
        return

    for name in names:
        full_path = directory / name
        try:
            mode = os.stat(full_path).st_mode
        except OSError as exc:
            logger.debug("Skipping %s: %s", full_path, exc)
            continue

        if stat.S_ISDIR(mode):
            if name not in excluded_dirs:
                yield from iter_files(full_path, extensions, excluded_dirs)
        elif stat.S_ISREG(mode) and full_path.suffix in extensions:
            yield full_path
