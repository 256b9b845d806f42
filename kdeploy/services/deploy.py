"""Deploy pipeline.

Order (each phase stops the run on failure):

1. look up the last published release (remote only)
2. divergence check, full refresh of the releases dir when required
3. refresh staging, run build steps
4. prune, report missing assets
5. run release (packaging) steps, prune again, rename the installer
6. publish (remote only, when upload is enabled)

The divergence check runs before packaging because a refresh wipes the
releases directory, and the packager needs the previous full package there to
produce deltas.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from kdeploy.core.config import Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol, Style
from kdeploy.release.divergence import DivergenceDetector, DivergenceReport
from kdeploy.release.errors import DownloadError, MissingAssetWarning, ReleaseCoreError
from kdeploy.release.manifest import PackageMarkers
from kdeploy.release.publisher import Publisher, PublishResult
from kdeploy.release.retention import RetentionEngine, RetentionOutcome, find_missing_assets
from kdeploy.release.sync import ProgressCallback, StopCheck, SyncClient, SyncResult
from kdeploy.remote.host import ReleaseHost
from kdeploy.remote.model import ReleaseDescriptor, pick_latest_release
from kdeploy.services.build import BuildService
from kdeploy.services.build_errors import BuildError
from kdeploy.services.version import next_version

__all__ = ["DeployError", "DeployReport", "DeployService", "SyncReport"]

DeployError = BuildError | ReleaseCoreError


@dataclass(frozen=True, slots=True)
class SyncReport:
    divergence: DivergenceReport
    sync: SyncResult | None = None


@dataclass(frozen=True, slots=True)
class DeployReport:
    version: str
    sync: SyncReport | None
    retention: tuple[RetentionOutcome, ...]
    missing: tuple[MissingAssetWarning, ...]
    publish: PublishResult | None


class DeployService:
    """Sequences the release phases for one invocation.

    ``host`` is None when no credential is configured; every remote phase is
    then skipped and only the local build and prune run. ``upload_progress``
    falls back to ``progress`` when not given.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        console: ConsoleProtocol,
        host: ReleaseHost | None,
        progress: ProgressCallback | None = None,
        upload_progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._settings = settings
        self._console = console
        self._host = host
        self._progress = progress
        self._upload_progress = upload_progress or progress
        self._should_stop = should_stop
        self._clock = clock
        self._build = BuildService(settings=settings, console=console)
        self._retention = RetentionEngine.from_settings(settings, console)

    @property
    def remote_enabled(self) -> bool:
        return self._host is not None

    # -------------------------------------------------------------------------
    # Single phases (also exposed as CLI commands)
    # -------------------------------------------------------------------------

    def last_release(self) -> Result[ReleaseDescriptor | None, DownloadError]:
        """Last published (non-draft) release, None without a host."""
        if self._host is None:
            return Ok(None)

        self._console.print("Checking GitHub releases...")
        listed = self._host.list_releases()
        if isinstance(listed, Err):
            return Err(
                DownloadError(
                    kind="transport",
                    message="cannot list releases",
                    status=listed.error.status,
                    hint=str(listed.error),
                )
            )

        release = pick_latest_release(listed.value)
        if release is not None:
            self._console.print(f"Last release: {release.name}", Style.DIM)
        else:
            self._console.print("No releases found.")
            self._console.warning("This will be the first release, make sure you want this!")
        return Ok(release)

    def resolve_version(
        self, explicit: str | None, last: ReleaseDescriptor | None
    ) -> Result[str, BuildError]:
        if explicit:
            return Ok(explicit)
        return next_version(
            last.tag if last is not None else None,
            now=self._clock(),
            increment=self._settings.config.version.increment,
        )

    def sync(self, release: ReleaseDescriptor | None) -> Result[SyncReport | None, DownloadError]:
        """Divergence check against ``release``; refresh when required."""
        if self._host is None:
            return Ok(None)

        detector = DivergenceDetector.from_settings(self._settings, self._host, self._console)
        checked = detector.check(release)
        if isinstance(checked, Err):
            return checked
        report = checked.value

        if not report.refresh_required or report.release is None:
            return Ok(SyncReport(divergence=report))

        client = SyncClient.from_settings(self._settings, self._host, self._console)
        synced = client.refresh(
            report.release,
            report.assets,
            progress=self._progress,
            should_stop=self._should_stop,
        )
        if isinstance(synced, Err):
            return synced
        return Ok(SyncReport(divergence=report, sync=synced.value))

    def prune(self) -> Result[RetentionOutcome, ReleaseCoreError]:
        return self._retention.run()

    def check(self) -> Result[list[MissingAssetWarning], ReleaseCoreError]:
        """Report manifest records without a local file."""
        loaded = self._retention.load()
        if isinstance(loaded, Err):
            return loaded
        if loaded.value is None:
            return Ok([])

        markers = PackageMarkers.from_config(self._settings.config.package)
        missing = find_missing_assets(self._settings.releases_dir, loaded.value, markers)
        for warning in missing:
            self._console.print(warning.message, Style.ERROR)
        return Ok(missing)

    def publish(self, version: str) -> Result[PublishResult | None, ReleaseCoreError]:
        if self._host is None:
            self._console.warning("upload skipped: no GitHub token configured")
            return Ok(None)

        publisher = Publisher.from_settings(self._settings, self._host, self._console)
        result = publisher.publish(
            version, progress=self._upload_progress, should_stop=self._should_stop
        )
        if isinstance(result, Err):
            return result
        return Ok(result.value)

    # -------------------------------------------------------------------------
    # Full pipeline
    # -------------------------------------------------------------------------

    def deploy(
        self,
        *,
        version: str | None = None,
        upload: bool | None = None,
    ) -> Result[DeployReport, DeployError]:
        settings = self._settings
        releases = settings.releases_dir
        if not releases.exists():
            self._console.warning("No release directory found. Make sure you want this!")
            releases.mkdir(parents=True)

        last = self.last_release()
        if isinstance(last, Err):
            return last

        resolved = self.resolve_version(version, last.value)
        if isinstance(resolved, Err):
            return resolved
        target = resolved.value
        self._console.print(f"Ready to deploy version {target}!", Style.BOLD)

        staged = self._build.refresh_staging()
        if isinstance(staged, Err):
            return staged

        synced = self.sync(last.value)
        if isinstance(synced, Err):
            return synced

        built = self._build.build(target)
        if isinstance(built, Err):
            return built

        first_prune = self.prune()
        if isinstance(first_prune, Err):
            return first_prune

        missing = self.check()
        if isinstance(missing, Err):
            return missing

        packaged = self._build.package(target)
        if isinstance(packaged, Err):
            return packaged

        second_prune = self.prune()
        if isinstance(second_prune, Err):
            return second_prune

        installer = self._build.finalize_installer()
        if isinstance(installer, Err):
            return installer

        published: PublishResult | None = None
        should_upload = settings.config.github.upload if upload is None else upload
        if should_upload:
            result = self.publish(target)
            if isinstance(result, Err):
                return result
            published = result.value

        return Ok(
            DeployReport(
                version=target,
                sync=synced.value,
                retention=(first_prune.value, second_prune.value),
                missing=tuple(missing.value),
                publish=published,
            )
        )
