"""The ``RELEASES`` manifest: records, parsing, serialization, classification.

Format, one record per line, UTF-8, ``\\n`` endings::

    <hash> <filename> <size>

Hash and filename must not contain spaces; the format has no escaping. Record
order is build order, so the last full package is the current baseline.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from kdeploy.core.config import PackageConfig
from kdeploy.core.result import Err, Ok, Result
from kdeploy.platform.files import atomic_write_text
from kdeploy.release.errors import MalformedManifestError

__all__ = [
    "ArtifactKind",
    "ArtifactRecord",
    "Manifest",
    "PackageMarkers",
    "classify",
    "load_manifest",
    "parse_manifest",
    "save_manifest",
    "serialize_manifest",
]

_BOM = "\ufeff"


class ArtifactKind(Enum):
    FULL = "full"
    DELTA = "delta"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class PackageMarkers:
    """Filename substrings that identify full and delta packages."""

    full: str = "-full"
    delta: str = "-delta"

    @classmethod
    def from_config(cls, package: PackageConfig) -> PackageMarkers:
        return cls(full=package.full_marker, delta=package.delta_marker)


@dataclass(frozen=True, slots=True)
class ArtifactRecord:
    hash: str
    filename: str
    size: int

    def to_line(self) -> str:
        return f"{self.hash} {self.filename} {self.size}"


def classify(record: ArtifactRecord, markers: PackageMarkers) -> ArtifactKind:
    """Full wins over delta when a name contains both markers."""
    if markers.full in record.filename:
        return ArtifactKind.FULL
    if markers.delta in record.filename:
        return ArtifactKind.DELTA
    return ArtifactKind.OTHER


@dataclass(frozen=True, slots=True)
class Manifest:
    """Ordered, immutable list of artifact records."""

    records: tuple[ArtifactRecord, ...] = ()

    @classmethod
    def of(cls, records: Iterable[ArtifactRecord]) -> Manifest:
        return cls(records=tuple(records))

    def __iter__(self) -> Iterator[ArtifactRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def filenames(self) -> tuple[str, ...]:
        return tuple(r.filename for r in self.records)

    def of_kind(self, kind: ArtifactKind, markers: PackageMarkers) -> tuple[ArtifactRecord, ...]:
        return tuple(r for r in self.records if classify(r, markers) is kind)

    def without(self, filenames: Iterable[str]) -> Manifest:
        drop = set(filenames)
        return Manifest.of(r for r in self.records if r.filename not in drop)


def _is_size(field: str) -> bool:
    return field.isascii() and field.isdigit()


def _is_plain_name(filename: str) -> bool:
    """A bare name that resolves inside the releases directory."""
    if "/" in filename or "\\" in filename:
        return False
    return filename not in (".", "..")


def parse_manifest(text: str, *, path: Path | None = None) -> Result[Manifest, MalformedManifestError]:
    """Parse manifest text.

    Blank lines are skipped. Fields past the third are ignored. Fails on the
    first line with fewer than three fields, a filename with a path separator
    (or ``.``/``..``), a size that is not a non-negative integer, or a
    filename already seen.
    """
    if text.startswith(_BOM):
        text = text[len(_BOM) :]

    records: list[ArtifactRecord] = []
    seen: set[str] = set()
    for number, raw in enumerate(text.split("\n"), start=1):
        line = raw.removesuffix("\r")
        if not line.strip():
            continue

        fields = line.split(" ")
        if len(fields) < 3:
            return Err(
                MalformedManifestError(
                    f"line {number}: expected '<hash> <filename> <size>', got {line!r}",
                    line=number,
                    path=path,
                )
            )

        hash_, filename, size = fields[0], fields[1], fields[2]
        if not hash_ or not filename:
            return Err(
                MalformedManifestError(
                    f"line {number}: empty hash or filename", line=number, path=path
                )
            )
        if not _is_plain_name(filename):
            return Err(
                MalformedManifestError(
                    f"line {number}: filename {filename!r} is not a plain file name",
                    line=number,
                    path=path,
                )
            )
        if not _is_size(size):
            return Err(
                MalformedManifestError(
                    f"line {number}: size {size!r} is not a non-negative integer",
                    line=number,
                    path=path,
                )
            )
        if filename in seen:
            return Err(
                MalformedManifestError(
                    f"line {number}: duplicate filename {filename}", line=number, path=path
                )
            )

        seen.add(filename)
        records.append(ArtifactRecord(hash=hash_, filename=filename, size=int(size)))

    return Ok(Manifest.of(records))


def serialize_manifest(manifest: Manifest) -> str:
    return "".join(f"{record.to_line()}\n" for record in manifest)


def load_manifest(path: Path) -> Result[Manifest, MalformedManifestError]:
    """Read and parse a manifest file.

    Raises:
        OSError: If the file cannot be read. Callers map this to their own
            error type (retention and sync treat I/O differently).
    """
    raw = path.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        return Err(MalformedManifestError(f"not valid UTF-8: {e}", path=path))
    return parse_manifest(text, path=path)


def save_manifest(path: Path, manifest: Manifest) -> None:
    """Atomically replace ``path`` with the serialized manifest.

    Raises:
        OSError: If the file cannot be written.
    """
    atomic_write_text(path, serialize_manifest(manifest))
