"""GitHub Releases implementation of ``ReleaseHost``.

Endpoints (REST v3):
- GET    /repos/{owner}/{repo}/releases              (paged)
- GET    /repos/{owner}/{repo}/releases/{id}/assets  (paged)
- GET    /repos/{owner}/{repo}/releases/assets/{id}   (Accept: octet-stream)
- POST   /repos/{owner}/{repo}/releases
- POST   {upload_url}?name={filename}
- DELETE /repos/{owner}/{repo}/releases/assets/{id}
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import quote

from kdeploy.core.result import Err, Ok, Result
from kdeploy.core.structured import as_obj_list, as_str_dict
from kdeploy.remote.host import UPLOAD_TIMEOUT_SECONDS, ByteProgress
from kdeploy.remote.http import HttpClient, HttpError
from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset

__all__ = ["GitHubReleaseHost", "API_ROOT"]

API_ROOT = "https://api.github.com"
_OCTET_STREAM = "application/octet-stream"
_PAGE_SIZE = 100


class GitHubReleaseHost:
    """Release host backed by one GitHub repository."""

    def __init__(
        self,
        http: HttpClient,
        *,
        owner: str,
        repo: str,
        upload_timeout: float = UPLOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._http = http
        self._owner = owner
        self._repo = repo
        self._upload_timeout = upload_timeout

    @property
    def releases_endpoint(self) -> str:
        return f"{API_ROOT}/repos/{self._owner}/{self._repo}/releases"

    @property
    def releases_page(self) -> str:
        """Human-facing releases page."""
        return f"https://github.com/{self._owner}/{self._repo}/releases"

    def asset_endpoint(self, asset_id: int) -> str:
        return f"{self.releases_endpoint}/assets/{asset_id}"

    def _get_pages(self, url: str, what: str) -> Result[list[object], HttpError]:
        """Collect every page of a list endpoint.

        Page 1 is ``url`` itself; later pages add ``&page=N``. A page shorter
        than ``_PAGE_SIZE`` is the last one.
        """
        items: list[object] = []
        page = 1
        while True:
            page_url = url if page == 1 else f"{url}&page={page}"
            result = self._http.get_json(page_url)
            if isinstance(result, Err):
                return result

            raw = as_obj_list(result.value)
            if raw is None:
                return Err(HttpError(url=page_url, status=0, message=f"unexpected {what} payload"))

            items.extend(raw)
            if len(raw) < _PAGE_SIZE:
                return Ok(items)
            page += 1

    def list_releases(self) -> Result[list[ReleaseDescriptor], HttpError]:
        result = self._get_pages(f"{self.releases_endpoint}?per_page={_PAGE_SIZE}", "releases")
        if isinstance(result, Err):
            return result

        out: list[ReleaseDescriptor] = []
        for item in result.value:
            data = as_str_dict(item)
            if data is None:
                continue
            release = ReleaseDescriptor.from_payload(data)
            if release is not None:
                out.append(release)
        return Ok(out)

    def list_assets(self, release_id: int) -> Result[list[RemoteAsset], HttpError]:
        url = f"{self.releases_endpoint}/{release_id}/assets?per_page={_PAGE_SIZE}"
        result = self._get_pages(url, "assets")
        if isinstance(result, Err):
            return result

        out: list[RemoteAsset] = []
        for item in result.value:
            data = as_str_dict(item)
            if data is None:
                continue
            asset = RemoteAsset.from_payload(data)
            if asset is not None:
                out.append(asset)
        return Ok(out)

    def fetch_asset_bytes(self, asset: RemoteAsset) -> Result[bytes, HttpError]:
        return self._http.get_bytes(self.asset_endpoint(asset.id), accept=_OCTET_STREAM)

    def download_asset(
        self,
        asset: RemoteAsset,
        dest: Path,
        progress: ByteProgress | None = None,
    ) -> Result[Path, HttpError]:
        return self._http.download(
            self.asset_endpoint(asset.id), dest, progress, accept=_OCTET_STREAM
        )

    def create_release(self, name: str, *, draft: bool = True) -> Result[ReleaseDescriptor, HttpError]:
        url = self.releases_endpoint
        result = self._http.post_json(url, {"name": name, "tag_name": name, "draft": draft})
        if isinstance(result, Err):
            return result

        data = as_str_dict(result.value)
        release = ReleaseDescriptor.from_payload(data) if data is not None else None
        if release is None:
            return Err(HttpError(url=url, status=0, message="unexpected release payload"))
        return Ok(release)

    def upload_asset(
        self,
        release: ReleaseDescriptor,
        filename: str,
        data: bytes,
    ) -> Result[RemoteAsset, HttpError]:
        url = upload_url_for(release.upload_url, filename)
        result = self._http.post_bytes(
            url, data, content_type=_OCTET_STREAM, timeout=self._upload_timeout
        )
        if isinstance(result, Err):
            return result

        payload = as_str_dict(result.value)
        asset = RemoteAsset.from_payload(payload) if payload is not None else None
        if asset is None:
            return Err(HttpError(url=url, status=0, message="unexpected asset payload"))
        return Ok(asset)

    def delete_asset(self, asset: RemoteAsset) -> Result[None, HttpError]:
        return self._http.delete(self.asset_endpoint(asset.id))


def upload_url_for(template: str, filename: str) -> str:
    """Expand GitHub's ``upload_url`` hypermedia template for one file.

    ``.../assets{?name,label}`` becomes ``.../assets?name=<filename>``.
    """
    base, _, _ = template.partition("{")
    return f"{base}?name={quote(filename)}"
