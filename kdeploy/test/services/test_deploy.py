"""Tests for kdeploy.services.deploy module.

The toolchain is replaced by a fake packager that appends a delta and a full
package to ``RELEASES``, the way the real packager grows the manifest.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from kdeploy.core.config import BuildConfig, Config, Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import MockConsole
from kdeploy.platform.process import ProcessError
from kdeploy.release.divergence import Verdict
from kdeploy.release.errors import DownloadError
from kdeploy.services import build as build_module
from kdeploy.services.build_errors import StepFailed
from kdeploy.services.deploy import DeployService
from kdeploy.test.fakes import FakeReleaseHost

LAST = "2023.1005.0"
NEXT = "2023.1005.1"
LAST_FULL = f"app-{LAST}-full.nupkg"
LAST_MANIFEST = f"h0 {LAST_FULL} 3\n".encode()


def _clock() -> datetime:
    return datetime(2023, 10, 5, 9, 0)


class FakeToolchain:
    """``run_process`` replacement: ``pack`` writes new packages."""

    def __init__(self, fail: str | None = None) -> None:
        self.commands: list[list[str]] = []
        self.fail = fail

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        self.commands.append(cmd)
        if cmd[0] == self.fail:
            return Err(ProcessError(tuple(cmd), 1, "", "failed"))
        if cmd[0] == "pack":
            version, releases = cmd[1], Path(cmd[2])
            delta = f"app-{version}-delta.nupkg"
            full = f"app-{version}-full.nupkg"
            (releases / delta).write_bytes(b"dd")
            (releases / full).write_bytes(b"ffff")
            with open(releases / "RELEASES", "a", encoding="utf-8", newline="") as handle:
                handle.write(f"hd {delta} 2\nhf {full} 4\n")
        return Ok("")


@pytest.fixture
def toolchain(monkeypatch: pytest.MonkeyPatch) -> FakeToolchain:
    fake = FakeToolchain()
    monkeypatch.setattr(build_module, "run_process", fake)
    return fake


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        root=tmp_path,
        config=Config(
            build=BuildConfig(
                steps=(("compile", "{version}", "{staging}"),),
                release_steps=(("pack", "{version}", "{releases}"),),
            ),
        ),
        token="secret",
    )


def _host_with_last_release() -> FakeReleaseHost:
    host = FakeReleaseHost()
    host.add_release(LAST, {"RELEASES": LAST_MANIFEST, LAST_FULL: b"old"})
    return host


def _service(tmp_path: Path, host: FakeReleaseHost | None, console: MockConsole) -> DeployService:
    return DeployService(
        settings=_settings(tmp_path),
        console=console,
        host=host,
        clock=_clock,
    )


class TestLastRelease:
    def test_skips_drafts(self, tmp_path: Path) -> None:
        host = _host_with_last_release()
        host.add_release(NEXT, draft=True)

        result = _service(tmp_path, host, MockConsole()).last_release()

        assert isinstance(result, Ok)
        assert result.value is not None
        assert result.value.tag == LAST

    def test_first_release_warns(self, tmp_path: Path) -> None:
        console = MockConsole()

        result = _service(tmp_path, FakeReleaseHost(), console).last_release()

        assert result == Ok(None)
        assert console.find("first release")

    def test_without_host(self, tmp_path: Path) -> None:
        assert _service(tmp_path, None, MockConsole()).last_release() == Ok(None)

    def test_listing_failure(self, tmp_path: Path) -> None:
        host = FakeReleaseHost()
        host.fail_list_releases = True

        result = _service(tmp_path, host, MockConsole()).last_release()

        assert isinstance(result, Err)
        assert isinstance(result.error, DownloadError)


class TestDeploy:
    def test_full_pipeline_with_stale_cache(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        host = _host_with_last_release()
        console = MockConsole()

        result = _service(tmp_path, host, console).deploy(upload=True)

        assert isinstance(result, Ok)
        report = result.value
        assert report.version == NEXT

        # Baseline package was missing locally, so the cache was refreshed
        assert report.sync is not None
        assert report.sync.divergence.verdict is Verdict.REFRESH_REQUIRED
        assert host.calls_of("download")[0] == "RELEASES"

        # Second prune dropped the previous full package
        releases = tmp_path / "releases"
        assert not (releases / LAST_FULL).exists()
        assert (releases / "RELEASES").read_text(encoding="utf-8") == (
            f"hd app-{NEXT}-delta.nupkg 2\nhf app-{NEXT}-full.nupkg 4\n"
        )

        assert report.publish is not None
        assert report.publish.created
        assert report.publish.release.draft
        assert host.calls_of("upload") == [
            f"app-{NEXT}-full.nupkg",
            f"app-{NEXT}-delta.nupkg",
            "RELEASES",
        ]
        assert console.find(f"Ready to deploy version {NEXT}!")

    def test_uploads_report_to_upload_progress(
        self, tmp_path: Path, toolchain: FakeToolchain
    ) -> None:
        downloads: list[str] = []
        uploads: list[str] = []
        service = DeployService(
            settings=_settings(tmp_path),
            console=MockConsole(),
            host=_host_with_last_release(),
            progress=lambda name, fraction: downloads.append(name),
            upload_progress=lambda name, fraction: uploads.append(name),
            clock=_clock,
        )

        assert isinstance(service.deploy(upload=True), Ok)

        assert "RELEASES" in downloads
        assert f"app-{NEXT}-full.nupkg" not in downloads
        assert f"app-{NEXT}-full.nupkg" in uploads
        assert uploads[-1] == "RELEASES"

    def test_phases_run_in_order(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        host = _host_with_last_release()

        _service(tmp_path, host, MockConsole()).deploy(upload=False)

        assert [cmd[0] for cmd in toolchain.commands] == ["compile", "pack"]
        assert toolchain.commands[0] == ["compile", NEXT, str(tmp_path / "staging")]

    def test_in_sync_cache_is_not_downloaded(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        host = _host_with_last_release()
        releases = tmp_path / "releases"
        releases.mkdir()
        (releases / LAST_FULL).write_bytes(b"old")
        (releases / "RELEASES").write_bytes(LAST_MANIFEST)

        result = _service(tmp_path, host, MockConsole()).deploy(upload=False)

        assert isinstance(result, Ok)
        assert result.value.sync is not None
        assert result.value.sync.divergence.verdict is Verdict.IN_SYNC
        assert host.calls_of("download") == []
        assert result.value.publish is None

    def test_explicit_version(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        result = _service(tmp_path, FakeReleaseHost(), MockConsole()).deploy(
            version="9.9.9", upload=False
        )

        assert isinstance(result, Ok)
        assert result.value.version == "9.9.9"
        assert (tmp_path / "releases" / "app-9.9.9-full.nupkg").exists()

    def test_first_run_creates_releases_dir(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        console = MockConsole()

        result = _service(tmp_path, FakeReleaseHost(), console).deploy(upload=False)

        assert isinstance(result, Ok)
        assert result.value.version == "2023.1005.0"
        assert (tmp_path / "releases").is_dir()
        assert console.find("No release directory found")

    def test_without_host_builds_locally(self, tmp_path: Path, toolchain: FakeToolchain) -> None:
        console = MockConsole()

        result = _service(tmp_path, None, console).deploy(upload=True)

        assert isinstance(result, Ok)
        assert result.value.sync is None
        assert result.value.publish is None
        assert console.find("upload skipped")

    def test_build_failure_stops_before_packaging(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        toolchain = FakeToolchain(fail="compile")
        monkeypatch.setattr(build_module, "run_process", toolchain)
        host = _host_with_last_release()

        result = _service(tmp_path, host, MockConsole()).deploy(upload=True)

        assert isinstance(result, Err)
        assert isinstance(result.error, StepFailed)
        assert [cmd[0] for cmd in toolchain.commands] == ["compile"]
        assert host.calls_of("upload") == []

    def test_download_failure_stops_before_build(
        self, tmp_path: Path, toolchain: FakeToolchain
    ) -> None:
        host = _host_with_last_release()
        host.fail_downloads.add(LAST_FULL)

        result = _service(tmp_path, host, MockConsole()).deploy(upload=True)

        assert isinstance(result, Err)
        assert isinstance(result.error, DownloadError)
        assert toolchain.commands == []


class TestCheck:
    def test_reports_missing_assets(self, tmp_path: Path) -> None:
        releases = tmp_path / "releases"
        releases.mkdir()
        (releases / "RELEASES").write_bytes(LAST_MANIFEST)
        console = MockConsole()

        result = _service(tmp_path, None, console).check()

        assert isinstance(result, Ok)
        assert [w.filename for w in result.value] == [LAST_FULL]
        assert console.has_error()

    def test_no_manifest(self, tmp_path: Path) -> None:
        assert _service(tmp_path, None, MockConsole()).check() == Ok([])
