"""Retention: keep one full package and the newest K deltas.

"Newest" is manifest position only. File timestamps and version strings are
never consulted; the append order of ``RELEASES`` is authoritative.
"""

from __future__ import annotations

import errno
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from kdeploy.core.config import DEFAULT_KEEP_DELTAS, Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol, Style
from kdeploy.release.errors import (
    MalformedManifestError,
    MissingAssetWarning,
    RetentionIOError,
)
from kdeploy.release.manifest import (
    ArtifactKind,
    ArtifactRecord,
    Manifest,
    PackageMarkers,
    classify,
    load_manifest,
    save_manifest,
)

__all__ = [
    "RetentionEngine",
    "RetentionOutcome",
    "RetentionPlan",
    "find_missing_assets",
    "plan_retention",
]

# Hidden directory under releases/ holding files a prune is removing
_TRASH_PREFIX = ".prune-"


@dataclass(frozen=True, slots=True)
class RetentionPlan:
    keep: Manifest
    remove: tuple[ArtifactRecord, ...]


@dataclass(frozen=True, slots=True)
class RetentionOutcome:
    """What a retention run did.

    Attributes:
        manifest: Manifest as persisted after the run.
        removed: Records dropped from the manifest.
        missing: Removed records whose file was already gone.
        failures: Delete failures tolerated because of ``proceed_on_error``.
    """

    manifest: Manifest
    removed: tuple[ArtifactRecord, ...] = ()
    missing: tuple[MissingAssetWarning, ...] = ()
    failures: tuple[RetentionIOError, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.removed)


def plan_retention(
    manifest: Manifest,
    markers: PackageMarkers,
    *,
    keep_deltas: int = DEFAULT_KEEP_DELTAS,
) -> RetentionPlan:
    """Pick the records to drop. Pure; touches no files.

    All full records but the last, and all delta records but the last
    ``keep_deltas``, are removed. Other records always stay.
    """
    fulls = [r for r in manifest if classify(r, markers) is ArtifactKind.FULL]
    deltas = [r for r in manifest if classify(r, markers) is ArtifactKind.DELTA]

    doomed = fulls[:-1] + deltas[: max(len(deltas) - keep_deltas, 0)]
    doomed_names = {r.filename for r in doomed}

    # Report removals in manifest order
    remove = tuple(r for r in manifest if r.filename in doomed_names)
    return RetentionPlan(keep=manifest.without(doomed_names), remove=remove)


def find_missing_assets(
    releases_dir: Path, manifest: Manifest, markers: PackageMarkers
) -> list[MissingAssetWarning]:
    """Full/delta records that have no file in ``releases_dir``."""
    out: list[MissingAssetWarning] = []
    for record in manifest:
        if classify(record, markers) is ArtifactKind.OTHER:
            continue
        path = releases_dir / record.filename
        if not path.is_file():
            out.append(MissingAssetWarning(filename=record.filename, path=path))
    return out


class RetentionEngine:
    """Apply the retention policy to a releases directory and its manifest.

    Without ``proceed_on_error`` the first delete failure aborts the run, puts
    back files already removed and leaves the manifest as it was. With it, the
    failure is reported and the record is dropped anyway.
    """

    def __init__(
        self,
        *,
        releases_dir: Path,
        manifest_name: str,
        markers: PackageMarkers,
        console: ConsoleProtocol,
        keep_deltas: int = DEFAULT_KEEP_DELTAS,
        proceed_on_error: bool = False,
    ) -> None:
        self._releases_dir = releases_dir
        self._manifest_path = releases_dir / manifest_name
        self._markers = markers
        self._console = console
        self._keep_deltas = keep_deltas
        self._proceed_on_error = proceed_on_error

    @classmethod
    def from_settings(cls, settings: Settings, console: ConsoleProtocol) -> RetentionEngine:
        cfg = settings.config
        return cls(
            releases_dir=settings.releases_dir,
            manifest_name=cfg.package.manifest,
            markers=PackageMarkers.from_config(cfg.package),
            console=console,
            keep_deltas=cfg.retention.keep_deltas,
            proceed_on_error=cfg.retention.proceed_on_error,
        )

    @property
    def manifest_path(self) -> Path:
        return self._manifest_path

    def load(self) -> Result[Manifest | None, MalformedManifestError | RetentionIOError]:
        """Load the manifest; ``Ok(None)`` when there is none yet."""
        try:
            return load_manifest(self._manifest_path)
        except FileNotFoundError:
            return Ok(None)
        except OSError as e:
            return Err(
                RetentionIOError(
                    f"cannot read manifest: {e}", path=self._manifest_path
                )
            )

    def run(self) -> Result[RetentionOutcome, MalformedManifestError | RetentionIOError]:
        """Load, prune and persist."""
        loaded = self.load()
        if isinstance(loaded, Err):
            return loaded
        if loaded.value is None:
            self._console.print(
                f"No {self._manifest_path.name} in {self._releases_dir}, nothing to prune",
                Style.DIM,
            )
            return Ok(RetentionOutcome(manifest=Manifest()))
        return self.prune(loaded.value)

    def prune(self, manifest: Manifest) -> Result[RetentionOutcome, RetentionIOError]:
        """Drop the records picked by the policy and delete their files.

        Doomed files are first moved into a hidden staging directory under the
        releases directory. They are deleted only once the new manifest is
        written; any earlier failure moves them back, so an aborted run leaves
        files and manifest as they were.
        """
        self._console.print(f"Pruning {self._manifest_path.name}...")
        plan = plan_retention(manifest, self._markers, keep_deltas=self._keep_deltas)
        if not plan.remove:
            return Ok(RetentionOutcome(manifest=manifest))

        try:
            trash = Path(tempfile.mkdtemp(prefix=_TRASH_PREFIX, dir=self._releases_dir))
        except OSError as e:
            return Err(
                RetentionIOError(f"cannot stage removals: {e}", path=self._releases_dir)
            )

        staged: list[Path] = []
        missing: list[MissingAssetWarning] = []
        failures: list[RetentionIOError] = []
        for record in plan.remove:
            label = (
                "release"
                if classify(record, self._markers) is ArtifactKind.FULL
                else "delta"
            )
            self._console.print(f"- Removing old {label} {record.filename}", Style.WARNING)

            path = self._releases_dir / record.filename
            try:
                _stage(path, trash)
            except FileNotFoundError:
                warning = MissingAssetWarning(filename=record.filename, path=path)
                self._console.print(f"  {warning.message}", Style.DIM)
                missing.append(warning)
                continue
            except OSError as e:
                failure = RetentionIOError(f"cannot delete {record.filename}: {e}", path=path)
                if not self._proceed_on_error:
                    self._restore(staged, trash)
                    return Err(failure)
                self._console.warning(failure.message)
                failures.append(failure)
                continue
            staged.append(path)

        try:
            save_manifest(self._manifest_path, plan.keep)
        except OSError as e:
            self._restore(staged, trash)
            return Err(
                RetentionIOError(f"cannot write manifest: {e}", path=self._manifest_path)
            )

        try:
            shutil.rmtree(trash)
        except OSError as e:
            self._console.warning(f"cannot remove {trash}: {e}")

        return Ok(
            RetentionOutcome(
                manifest=plan.keep,
                removed=plan.remove,
                missing=tuple(missing),
                failures=tuple(failures),
            )
        )

    def _restore(self, staged: list[Path], trash: Path) -> None:
        """Move staged files back to where they were.

        The staging directory is removed only once empty; files that could not
        be moved back stay there.
        """
        for path in reversed(staged):
            try:
                (trash / path.name).rename(path)
            except OSError as e:
                self._console.error(f"cannot restore {path.name}: {e}")
        try:
            trash.rmdir()
        except OSError as e:
            self._console.warning(f"unrestored files left in {trash}: {e}")


def _stage(path: Path, trash: Path) -> None:
    """Move a package file into ``trash``.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        OSError: If ``path`` is not a regular file or cannot be moved.
    """
    if path.is_dir():
        raise IsADirectoryError(errno.EISDIR, "is a directory", str(path))
    path.rename(trash / path.name)
