"""Decide whether the local release cache can be trusted.

The host is ground truth. Any disagreement (missing baseline package, manifest
bytes that differ) leads to a full refresh rather than a partial repair.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from kdeploy.core.config import PackageConfig, Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol, Style
from kdeploy.release.errors import DownloadError
from kdeploy.remote.host import ReleaseHost
from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset

__all__ = [
    "DivergenceDetector",
    "DivergenceReport",
    "Verdict",
    "manifests_match",
]


class Verdict(Enum):
    FIRST_RELEASE = "first_release"
    NO_REMOTE_MANIFEST = "no_remote_manifest"
    REFRESH_REQUIRED = "refresh_required"
    IN_SYNC = "in_sync"


@dataclass(frozen=True, slots=True)
class DivergenceReport:
    verdict: Verdict
    release: ReleaseDescriptor | None = None
    assets: tuple[RemoteAsset, ...] = ()
    reason: str | None = None

    @property
    def refresh_required(self) -> bool:
        return self.verdict is Verdict.REFRESH_REQUIRED


def manifests_match(local: bytes | None, remote: bytes) -> bool:
    """Byte-for-byte comparison; a missing local manifest never matches."""
    return local is not None and local == remote


class DivergenceDetector:
    def __init__(
        self,
        *,
        host: ReleaseHost,
        releases_dir: Path,
        package: PackageConfig,
        console: ConsoleProtocol,
    ) -> None:
        self._host = host
        self._releases_dir = releases_dir
        self._package = package
        self._console = console

    @classmethod
    def from_settings(
        cls, settings: Settings, host: ReleaseHost, console: ConsoleProtocol
    ) -> DivergenceDetector:
        return cls(
            host=host,
            releases_dir=settings.releases_dir,
            package=settings.config.package,
            console=console,
        )

    def check(self, release: ReleaseDescriptor | None) -> Result[DivergenceReport, DownloadError]:
        """Compare local state against ``release``, the last published release.

        The baseline package check runs before any download so an obviously
        stale cache costs no manifest fetch.
        """
        if release is None:
            return Ok(DivergenceReport(verdict=Verdict.FIRST_RELEASE))

        listed = self._host.list_assets(release.id)
        if isinstance(listed, Err):
            return Err(
                DownloadError(
                    kind="transport",
                    message=f"cannot list assets of release {release.name}",
                    status=listed.error.status,
                    hint=str(listed.error),
                )
            )
        assets = tuple(listed.value)

        manifest_name = self._package.manifest
        remote_manifest = next((a for a in assets if a.name == manifest_name), None)
        if remote_manifest is None:
            self._console.warning(
                f"release {release.name} has no {manifest_name} asset; keeping local cache"
            )
            return Ok(
                DivergenceReport(
                    verdict=Verdict.NO_REMOTE_MANIFEST,
                    release=release,
                    assets=assets,
                    reason=f"no {manifest_name} asset",
                )
            )

        baseline = self._package.full_package_name(release.name)
        if not (self._releases_dir / baseline).is_file():
            self._console.print("Last version's package not found locally.", Style.ERROR)
            return Ok(
                DivergenceReport(
                    verdict=Verdict.REFRESH_REQUIRED,
                    release=release,
                    assets=assets,
                    reason=f"missing {baseline}",
                )
            )

        fetched = self._host.fetch_asset_bytes(remote_manifest)
        if isinstance(fetched, Err):
            return Err(
                DownloadError(
                    kind="transport",
                    message=f"cannot fetch remote {manifest_name}",
                    asset=manifest_name,
                    status=fetched.error.status,
                    hint=str(fetched.error),
                )
            )

        if not manifests_match(self._read_local_manifest(), fetched.value):
            self._console.print(f"Server's {manifest_name} differed from ours.", Style.ERROR)
            return Ok(
                DivergenceReport(
                    verdict=Verdict.REFRESH_REQUIRED,
                    release=release,
                    assets=assets,
                    reason=f"{manifest_name} differs from host",
                )
            )

        return Ok(DivergenceReport(verdict=Verdict.IN_SYNC, release=release, assets=assets))

    def _read_local_manifest(self) -> bytes | None:
        try:
            return (self._releases_dir / self._package.manifest).read_bytes()
        except OSError:
            # Unreadable counts as divergent; the refresh replaces the file.
            return None
