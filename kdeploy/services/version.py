"""Date-based release versions: ``yyyy.Mdd.N``.

``yyyy.Mdd.`` is today's date (month unpadded, day zero-padded) and ``N``
counts releases made that day.
"""

from __future__ import annotations

from datetime import datetime

from kdeploy.core.result import Err, Ok, Result
from kdeploy.services.build_errors import VersionInvalid

__all__ = ["next_version", "version_prefix"]


def version_prefix(now: datetime) -> str:
    return f"{now.year}.{now.month}{now.day:02d}."


def next_version(
    last_tag: str | None,
    *,
    now: datetime,
    increment: bool = True,
) -> Result[str, VersionInvalid]:
    """Version for the next deploy given the last published tag.

    A last tag from another day restarts the counter at 0. With
    ``increment`` off, a same-day deploy reuses the last counter (rebuilds
    into the existing release).
    """
    prefix = version_prefix(now)
    if last_tag is None or not last_tag.startswith(prefix):
        return Ok(f"{prefix}0")

    counter = last_tag[len(prefix) :].split(".")[0]
    if not (counter.isascii() and counter.isdigit()):
        return Err(VersionInvalid(tag=last_tag, reason=f"counter {counter!r} is not a number"))

    return Ok(f"{prefix}{int(counter) + (1 if increment else 0)}")
