"""Repopulate the releases directory from a release's assets.

Transfer logic only: progress goes to a ``ProgressCallback`` and messages to
the injected console. The first failed download aborts the refresh; files
already downloaded are left in place.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from kdeploy.core.config import PackageConfig, Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol
from kdeploy.platform.files import refresh_directory
from kdeploy.release.errors import DownloadError
from kdeploy.release.manifest import Manifest, load_manifest
from kdeploy.remote.host import ReleaseHost
from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset

__all__ = [
    "ProgressCallback",
    "StopCheck",
    "SyncClient",
    "SyncResult",
    "select_sync_assets",
]

# (asset name, fraction in [0, 1])
ProgressCallback = Callable[[str, float], None]
StopCheck = Callable[[], bool]


@dataclass(frozen=True, slots=True)
class SyncResult:
    release: ReleaseDescriptor
    downloaded: tuple[str, ...]
    manifest: Manifest | None
    bytes_received: int


def select_sync_assets(
    assets: Iterable[RemoteAsset], *, manifest_name: str, extension: str
) -> list[RemoteAsset]:
    """Assets worth mirroring, manifest first, packages in host order."""
    manifest = [a for a in assets if a.name == manifest_name]
    packages = [a for a in assets if a.name != manifest_name and a.name.endswith(extension)]
    return manifest + packages


def _fraction(received: int, total: int, fallback_total: int) -> float:
    size = total or fallback_total
    if size <= 0:
        return 0.0
    return min(received / size, 1.0)


class SyncClient:
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
    ) -> SyncClient:
        return cls(
            host=host,
            releases_dir=settings.releases_dir,
            package=settings.config.package,
            console=console,
        )

    def refresh(
        self,
        release: ReleaseDescriptor,
        assets: Iterable[RemoteAsset] | None = None,
        *,
        progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
    ) -> Result[SyncResult, DownloadError]:
        """Wipe the releases directory and download ``release``'s assets into it.

        Args:
            release: Release to mirror.
            assets: Asset listing if the caller already has it.
            progress: Called with (asset name, fraction) while streaming.
            should_stop: Checked before each asset; True cancels the refresh.
        """
        if assets is None:
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
            assets = listed.value

        selected = select_sync_assets(
            assets,
            manifest_name=self._package.manifest,
            extension=self._package.extension,
        )

        self._console.print("Refreshing local releases directory...")
        try:
            refresh_directory(self._releases_dir)
        except OSError as e:
            return Err(
                DownloadError(
                    kind="filesystem",
                    message=f"cannot recreate {self._releases_dir}: {e}",
                )
            )

        downloaded: list[str] = []
        manifest: Manifest | None = None
        received_total = 0
        for asset in selected:
            if should_stop is not None and should_stop():
                return Err(
                    DownloadError(
                        kind="cancelled",
                        message=f"refresh cancelled after {len(downloaded)} of {len(selected)} assets",
                        asset=asset.name,
                    )
                )

            result = self._download(asset, progress)
            if isinstance(result, Err):
                return result
            downloaded.append(asset.name)
            received_total += result.value.stat().st_size

            if asset.name == self._package.manifest:
                parsed = self._validate_manifest(result.value)
                if isinstance(parsed, Err):
                    return parsed
                manifest = parsed.value

        return Ok(
            SyncResult(
                release=release,
                downloaded=tuple(downloaded),
                manifest=manifest,
                bytes_received=received_total,
            )
        )

    def _download(
        self, asset: RemoteAsset, progress: ProgressCallback | None
    ) -> Result[Path, DownloadError]:
        dest = self._releases_dir / asset.name

        def on_bytes(received: int, total: int) -> None:
            if progress is not None:
                progress(asset.name, _fraction(received, total, asset.size))

        if progress is not None:
            progress(asset.name, 0.0)
        result = self._host.download_asset(asset, dest, on_bytes)
        if isinstance(result, Err):
            return Err(
                DownloadError(
                    kind="transport",
                    message=f"download failed: {asset.name}",
                    asset=asset.name,
                    status=result.error.status,
                    hint=str(result.error),
                )
            )
        if progress is not None:
            progress(asset.name, 1.0)
        return Ok(result.value)

    def _validate_manifest(self, path: Path) -> Result[Manifest, DownloadError]:
        try:
            loaded = load_manifest(path)
        except OSError as e:
            return Err(
                DownloadError(kind="filesystem", message=f"cannot read {path}: {e}", asset=path.name)
            )
        if isinstance(loaded, Err):
            return Err(
                DownloadError(
                    kind="invalid_manifest",
                    message=f"host {path.name} is malformed: {loaded.error.message}",
                    asset=path.name,
                )
            )
        return Ok(loaded.value)
