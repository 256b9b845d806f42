"""Filesystem helpers."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "refresh_directory"]


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write text to path atomically using temp file + replace.

    Line endings are written as given (no platform translation), so a
    manifest saved on Windows keeps its ``\\n`` separators.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    tmp_path = Path(tmp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def refresh_directory(path: Path) -> None:
    """Delete ``path`` recursively if present, then recreate it empty.

    Raises:
        OSError: If the tree cannot be removed or the directory created.
    """
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
