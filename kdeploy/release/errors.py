"""Error and warning values for the release core.

All of them are plain frozen dataclasses carried inside ``Err``; callers
branch with ``match`` instead of ``except``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

__all__ = [
    "DownloadError",
    "MalformedManifestError",
    "MissingAssetWarning",
    "ReleaseCoreError",
    "RetentionIOError",
    "UploadError",
]


@dataclass(frozen=True, slots=True)
class MalformedManifestError:
    """Manifest text does not follow ``<hash> <filename> <size>``.

    Read-only failure: the file on disk is never rewritten because of it.
    """

    message: str
    line: int | None = None
    path: Path | None = None

    @property
    def hint(self) -> str | None:
        if self.path is None:
            return None
        return f"Fix or delete {self.path}; the next sync restores it from the host"


@dataclass(frozen=True, slots=True)
class RetentionIOError:
    """A pruned file could not be deleted or the manifest could not be written."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class DownloadError:
    kind: Literal["transport", "payload", "invalid_manifest", "filesystem", "cancelled"]
    message: str
    asset: str | None = None
    status: int = 0
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class UploadError:
    kind: Literal["transport", "filesystem", "release_missing", "cancelled"]
    message: str
    asset: str | None = None
    status: int = 0
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class MissingAssetWarning:
    """A manifest record has no local file. Reported, never fatal."""

    filename: str
    path: Path

    @property
    def message(self) -> str:
        return f"Local file missing {self.filename}"


ReleaseCoreError = MalformedManifestError | RetentionIOError | DownloadError | UploadError
