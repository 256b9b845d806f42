"""Upload the releases directory to a (draft) release on the host.

A failed batch leaves the release as a draft. Re-running resumes: assets the
release already has are skipped by name. The manifest is the exception: it is
always replaced and always uploaded last, so the host's manifest only ever
describes packages that are already there.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from kdeploy.core.config import Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol, Style
from kdeploy.release.errors import UploadError
from kdeploy.release.sync import ProgressCallback, StopCheck
from kdeploy.remote.host import ReleaseHost
from kdeploy.remote.http import HttpError
from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset, pick_latest_release

__all__ = ["PublishResult", "Publisher", "upload_order"]


@dataclass(frozen=True, slots=True)
class PublishResult:
    release: ReleaseDescriptor
    created: bool
    uploaded: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()


def upload_order(files: Iterable[Path], *, manifest_name: str) -> list[Path]:
    """Regular non-dot files, reverse name order, manifest last."""
    candidates = [p for p in files if p.is_file() and not p.name.startswith(".")]
    ordered = sorted(candidates, key=lambda p: p.name, reverse=True)
    return [p for p in ordered if p.name != manifest_name] + [
        p for p in ordered if p.name == manifest_name
    ]


def _transport(message: str, error: HttpError, *, asset: str | None = None) -> UploadError:
    return UploadError(
        kind="transport",
        message=message,
        asset=asset,
        status=error.status,
        hint=str(error),
    )


class Publisher:
    def __init__(
        self,
        *,
        host: ReleaseHost,
        releases_dir: Path,
        manifest_name: str,
        console: ConsoleProtocol,
    ) -> None:
        self._host = host
        self._releases_dir = releases_dir
        self._manifest_name = manifest_name
        self._console = console

    @classmethod
    def from_settings(
        cls, settings: Settings, host: ReleaseHost, console: ConsoleProtocol
    ) -> Publisher:
        return cls(
            host=host,
            releases_dir=settings.releases_dir,
            manifest_name=settings.config.package.manifest,
            console=console,
        )

    def ensure_release(self, version: str) -> Result[tuple[ReleaseDescriptor, bool], UploadError]:
        """Reuse the newest release (drafts included) if tagged ``version``.

        Returns:
            Ok((release, created)) where ``created`` is True for a new draft.
        """
        listed = self._host.list_releases()
        if isinstance(listed, Err):
            return Err(_transport("cannot list releases", listed.error))

        latest = pick_latest_release(listed.value, include_drafts=True)
        if latest is not None and latest.tag == version:
            self._console.print(f"- Adding to existing release {version}...", Style.WARNING)
            return Ok((latest, False))

        self._console.print(f"- Creating release {version}...", Style.WARNING)
        created = self._host.create_release(version, draft=True)
        if isinstance(created, Err):
            return Err(_transport(f"cannot create release {version}", created.error))
        return Ok((created.value, True))

    def publish(
        self,
        version: str,
        *,
        progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
    ) -> Result[PublishResult, UploadError]:
        self._console.print("Publishing to GitHub...")

        ensured = self.ensure_release(version)
        if isinstance(ensured, Err):
            return ensured
        release, created = ensured.value

        existing: dict[str, RemoteAsset] = {}
        if not created:
            listed = self._host.list_assets(release.id)
            if isinstance(listed, Err):
                return Err(_transport(f"cannot list assets of {release.name}", listed.error))
            existing = {a.name: a for a in listed.value}

        try:
            files = upload_order(self._releases_dir.iterdir(), manifest_name=self._manifest_name)
        except OSError as e:
            return Err(UploadError(kind="filesystem", message=f"cannot list {self._releases_dir}: {e}"))

        uploaded: list[str] = []
        skipped: list[str] = []
        for path in files:
            if should_stop is not None and should_stop():
                return Err(
                    UploadError(
                        kind="cancelled",
                        message=f"publish cancelled; release {release.name} left as draft",
                        asset=path.name,
                    )
                )

            previous = existing.get(path.name)
            if previous is not None and path.name != self._manifest_name:
                self._console.print(f"- Skipping existing asset {path.name}", Style.DIM)
                skipped.append(path.name)
                continue

            if previous is not None:
                deleted = self._host.delete_asset(previous)
                if isinstance(deleted, Err):
                    return Err(
                        _transport(f"cannot replace {path.name}", deleted.error, asset=path.name)
                    )

            result = self._upload(release, path, progress)
            if isinstance(result, Err):
                return result
            uploaded.append(path.name)

        return Ok(
            PublishResult(
                release=release,
                created=created,
                uploaded=tuple(uploaded),
                skipped=tuple(skipped),
            )
        )

    def _upload(
        self,
        release: ReleaseDescriptor,
        path: Path,
        progress: ProgressCallback | None,
    ) -> Result[RemoteAsset, UploadError]:
        self._console.print(f"- Adding asset {path.name}...", Style.WARNING)
        try:
            data = path.read_bytes()
        except OSError as e:
            return Err(
                UploadError(kind="filesystem", message=f"cannot read {path}: {e}", asset=path.name)
            )

        if progress is not None:
            progress(path.name, 0.0)
        result = self._host.upload_asset(release, path.name, data)
        if isinstance(result, Err):
            return Err(_transport(f"upload failed: {path.name}", result.error, asset=path.name))
        if progress is not None:
            progress(path.name, 1.0)
        return Ok(result.value)
