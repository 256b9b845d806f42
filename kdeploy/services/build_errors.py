from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class StepFailed:
    step: tuple[str, ...]
    returncode: int
    output: str


@dataclass(frozen=True, slots=True)
class StagingFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class InstallerMissing:
    path: Path


@dataclass(frozen=True, slots=True)
class InstallerRenameFailed:
    path: Path
    reason: str


@dataclass(frozen=True, slots=True)
class VersionInvalid:
    tag: str
    reason: str


BuildError = StepFailed | StagingFailed | InstallerMissing | InstallerRenameFailed | VersionInvalid
