from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from kdeploy.core.structured import get_str


@dataclass(frozen=True, slots=True)
class RemoteAsset:
    """A file attached to a release on the host."""

    id: int
    name: str
    size: int

    @classmethod
    def from_payload(cls, data: Mapping[str, object]) -> RemoteAsset | None:
        asset_id = data.get("id")
        name = get_str(data, "name")
        size = data.get("size", 0)
        if not isinstance(asset_id, int) or name is None:
            return None
        if isinstance(size, bool) or not isinstance(size, int):
            size = 0
        return cls(id=asset_id, name=name, size=size)


@dataclass(frozen=True, slots=True)
class ReleaseDescriptor:
    """One published (or draft) release of the product."""

    id: int
    name: str
    tag: str
    draft: bool
    prerelease: bool
    upload_url: str
    html_url: str | None = None

    @classmethod
    def from_payload(cls, data: Mapping[str, object]) -> ReleaseDescriptor | None:
        release_id = data.get("id")
        tag = get_str(data, "tag_name")
        if not isinstance(release_id, int) or tag is None:
            return None
        # Drafts may have no name yet; GitHub shows the tag in that case.
        name = get_str(data, "name") or tag
        return cls(
            id=release_id,
            name=name,
            tag=tag,
            draft=data.get("draft") is True,
            prerelease=data.get("prerelease") is True,
            upload_url=get_str(data, "upload_url") or "",
            html_url=get_str(data, "html_url"),
        )


def pick_latest_release(
    releases: Iterable[ReleaseDescriptor], *, include_drafts: bool = False
) -> ReleaseDescriptor | None:
    """First release of a newest-first listing, skipping drafts unless asked."""
    for release in releases:
        if include_drafts or not release.draft:
            return release
    return None
