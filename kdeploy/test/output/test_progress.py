"""Tests for kdeploy.output.progress module."""

from __future__ import annotations

from io import StringIO

from rich.console import Console

from kdeploy.output.progress import RichTransferProgress


def _progress() -> RichTransferProgress:
    return RichTransferProgress(Console(file=StringIO(), force_terminal=False))


def _bars(progress: RichTransferProgress) -> dict[str, float]:
    tasks = progress._progress.tasks  # pyright: ignore[reportPrivateUsage]
    return {task.description: task.completed for task in tasks}


def test_tracks_fraction_per_asset() -> None:
    with _progress() as progress:
        progress("RELEASES", 0.0)
        progress("RELEASES", 1.0)
        progress("app-1.0-full.nupkg", 0.25)

        assert _bars(progress) == {
            "Downloading RELEASES": 1.0,
            "Downloading app-1.0-full.nupkg": 0.25,
        }


def test_fraction_clamped() -> None:
    with _progress() as progress:
        progress("a", 1.7)
        progress("b", -0.5)

        assert _bars(progress) == {"Downloading a": 1.0, "Downloading b": 0.0}


def test_uploads_get_their_own_bars() -> None:
    with _progress() as progress:
        progress("RELEASES", 1.0)
        uploads = progress.with_verb("Uploading")
        uploads("RELEASES", 0.0)

        assert _bars(progress) == {"Downloading RELEASES": 1.0, "Uploading RELEASES": 0.0}


def test_custom_default_verb() -> None:
    progress = RichTransferProgress(Console(file=StringIO()), verb="Uploading")
    progress("app-1.0-full.nupkg", 0.5)

    assert _bars(progress) == {"Uploading app-1.0-full.nupkg": 0.5}
