"""Release host protocol.

The release services depend on this protocol only. ``GitHubReleaseHost`` is
the production implementation; tests use an in-memory host.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from kdeploy.core.result import Result
from kdeploy.remote.http import HttpError
from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset

# Large packages are tens of MB; uploads get a long single-request timeout.
UPLOAD_TIMEOUT_SECONDS = 240.0

ByteProgress = Callable[[int, int], None]


class ReleaseHost(Protocol):
    def list_releases(self) -> Result[list[ReleaseDescriptor], HttpError]:
        """Releases ordered newest-first, drafts included."""
        ...

    def list_assets(self, release_id: int) -> Result[list[RemoteAsset], HttpError]: ...

    def fetch_asset_bytes(self, asset: RemoteAsset) -> Result[bytes, HttpError]: ...

    def download_asset(
        self,
        asset: RemoteAsset,
        dest: Path,
        progress: ByteProgress | None = None,
    ) -> Result[Path, HttpError]: ...

    def create_release(self, name: str, *, draft: bool = True) -> Result[ReleaseDescriptor, HttpError]: ...

    def upload_asset(
        self,
        release: ReleaseDescriptor,
        filename: str,
        data: bytes,
    ) -> Result[RemoteAsset, HttpError]: ...

    def delete_asset(self, asset: RemoteAsset) -> Result[None, HttpError]: ...
