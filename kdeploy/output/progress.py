"""Per-asset transfer progress rendered with Rich.

The sync client and the publisher only know a ``ProgressCallback(name,
fraction)``; this module is the presentation side that turns those calls into
progress bars.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from types import TracebackType
from typing import TYPE_CHECKING

from rich.progress import BarColumn, Progress, TaskID, TextColumn

if TYPE_CHECKING:
    from rich.console import Console

__all__ = ["RichTransferProgress"]


class RichTransferProgress:
    """Context manager that is also a ``ProgressCallback``.

    Bars are keyed by verb and asset name, so a download and a later upload
    of the same file get separate bars.

    Usage:
        with RichTransferProgress(console.rich) as progress:
            refresh(..., progress=progress)
            publish(..., progress=progress.with_verb("Uploading"))
    """

    def __init__(self, console: Console | None = None, *, verb: str = "Downloading") -> None:
        self._progress = Progress(
            TextColumn("[yellow]- {task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console,
        )
        self._verb = verb
        self._tasks: dict[tuple[str, str], TaskID] = {}

    def __enter__(self) -> RichTransferProgress:
        self._progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._progress.stop()

    def __call__(self, name: str, fraction: float) -> None:
        self._report(self._verb, name, fraction)

    def with_verb(self, verb: str) -> Callable[[str, float], None]:
        """Callback drawing into the same display under another label."""
        return partial(self._report, verb)

    def _report(self, verb: str, name: str, fraction: float) -> None:
        task = self._tasks.get((verb, name))
        if task is None:
            task = self._progress.add_task(f"{verb} {name}", total=1.0)
            self._tasks[(verb, name)] = task
        self._progress.update(task, completed=min(max(fraction, 0.0), 1.0))
