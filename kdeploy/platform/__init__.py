"""Filesystem and subprocess helpers."""

from .files import atomic_write_text, refresh_directory
from .process import ProcessError, run

__all__ = [
    "ProcessError",
    "atomic_write_text",
    "refresh_directory",
    "run",
]
