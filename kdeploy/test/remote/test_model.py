"""Tests for kdeploy.remote.model module."""

from __future__ import annotations

from kdeploy.remote.model import ReleaseDescriptor, RemoteAsset, pick_latest_release


def _release(tag: str, *, draft: bool = False) -> ReleaseDescriptor:
    return ReleaseDescriptor(
        id=ord(tag[0]), name=tag, tag=tag, draft=draft, prerelease=False, upload_url=""
    )


class TestRemoteAsset:
    def test_from_payload(self) -> None:
        asset = RemoteAsset.from_payload({"id": 7, "name": "RELEASES", "size": 120})
        assert asset == RemoteAsset(id=7, name="RELEASES", size=120)

    def test_missing_size_defaults_to_zero(self) -> None:
        asset = RemoteAsset.from_payload({"id": 7, "name": "RELEASES"})
        assert asset is not None
        assert asset.size == 0

    def test_invalid_payload(self) -> None:
        assert RemoteAsset.from_payload({"name": "RELEASES"}) is None
        assert RemoteAsset.from_payload({"id": 1}) is None


class TestReleaseDescriptor:
    def test_from_payload(self) -> None:
        release = ReleaseDescriptor.from_payload(
            {
                "id": 3,
                "name": "2023.1005.0",
                "tag_name": "2023.1005.0",
                "draft": False,
                "prerelease": False,
                "upload_url": "https://uploads.github.com/repos/o/r/releases/3/assets{?name,label}",
                "html_url": "https://github.com/o/r/releases/tag/2023.1005.0",
            }
        )
        assert release is not None
        assert release.tag == "2023.1005.0"
        assert release.upload_url.endswith("{?name,label}")
        assert release.html_url is not None

    def test_name_falls_back_to_tag(self) -> None:
        release = ReleaseDescriptor.from_payload({"id": 3, "name": None, "tag_name": "v1", "draft": True})
        assert release is not None
        assert release.name == "v1"
        assert release.draft

    def test_missing_tag(self) -> None:
        assert ReleaseDescriptor.from_payload({"id": 3}) is None


class TestPickLatestRelease:
    def test_first_non_draft(self) -> None:
        releases = [_release("b", draft=True), _release("a")]
        latest = pick_latest_release(releases)
        assert latest is not None
        assert latest.tag == "a"

    def test_drafts_included_on_request(self) -> None:
        releases = [_release("b", draft=True), _release("a")]
        latest = pick_latest_release(releases, include_drafts=True)
        assert latest is not None
        assert latest.tag == "b"

    def test_empty(self) -> None:
        assert pick_latest_release([]) is None
