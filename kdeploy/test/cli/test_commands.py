from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from typer.testing import CliRunner

from kdeploy import __version__
from kdeploy.cli import context as context_module
from kdeploy.cli.app import app
from kdeploy.core.config import Settings
from kdeploy.core.errors import ErrorCode
from kdeploy.core.result import Ok, Result
from kdeploy.platform.process import ProcessError
from kdeploy.remote.host import ReleaseHost
from kdeploy.services import build as build_module
from kdeploy.services.version import version_prefix
from kdeploy.test.fakes import FakeReleaseHost

runner = CliRunner()

CONFIG = """
[github]
owner = "kikuyodev"
repo = "kumi"

[build]
release_steps = [["pack", "{version}", "{releases}"]]
"""

MANIFEST = (
    "h1 app-1.0-full.nupkg 1\n"
    "h2 app-1.0-1.1-delta.nupkg 1\n"
    "h3 app-1.1-full.nupkg 1\n"
)


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "kdeploy.toml").write_text(CONFIG, encoding="utf-8")
    monkeypatch.setenv(context_module.ROOT_ENV_VAR, str(tmp_path))
    monkeypatch.delenv("KDEPLOY_GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return tmp_path


def _write_releases(root: Path, manifest: str, files: list[str]) -> Path:
    releases = root / "releases"
    releases.mkdir()
    (releases / "RELEASES").write_text(manifest, encoding="utf-8")
    for name in files:
        (releases / name).write_bytes(b"x")
    return releases


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_missing_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(context_module.ROOT_ENV_VAR, str(tmp_path))

    result = runner.invoke(app, ["prune"])

    assert result.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_invalid_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "kdeploy.toml").write_text("[retention]\nkeep_deltas = -3\n", encoding="utf-8")
    monkeypatch.setenv(context_module.ROOT_ENV_VAR, str(tmp_path))

    result = runner.invoke(app, ["prune"])

    assert result.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_prune(project: Path) -> None:
    releases = _write_releases(
        project, MANIFEST, ["app-1.0-full.nupkg", "app-1.0-1.1-delta.nupkg", "app-1.1-full.nupkg"]
    )

    result = runner.invoke(app, ["prune"])

    assert result.exit_code == 0, result.output
    assert not (releases / "app-1.0-full.nupkg").exists()
    assert "removed 1 artifact(s)" in result.output


def test_prune_malformed_manifest(project: Path) -> None:
    _write_releases(project, "only-two fields\n", [])

    result = runner.invoke(app, ["prune"])

    assert result.exit_code == int(ErrorCode.MANIFEST_ERROR)


def test_check_reports_missing(project: Path) -> None:
    _write_releases(project, MANIFEST, ["app-1.1-full.nupkg"])

    result = runner.invoke(app, ["check"])

    assert result.exit_code == int(ErrorCode.IO_ERROR)
    assert "Local file missing app-1.0-full.nupkg" in result.output


def test_check_all_present(project: Path) -> None:
    _write_releases(
        project, MANIFEST, ["app-1.0-full.nupkg", "app-1.0-1.1-delta.nupkg", "app-1.1-full.nupkg"]
    )

    result = runner.invoke(app, ["check"])

    assert result.exit_code == 0


def test_sync_needs_token(project: Path) -> None:
    result = runner.invoke(app, ["sync"])

    assert result.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_publish_needs_token(project: Path) -> None:
    result = runner.invoke(app, ["publish", "--tag", "1.0"])

    assert result.exit_code == int(ErrorCode.CONFIG_ERROR)


def test_next_version_without_remote(project: Path) -> None:
    result = runner.invoke(app, ["next-version"])

    assert result.exit_code == 0
    assert result.output.strip().startswith(version_prefix(datetime.now()))


def test_deploy_with_fake_host(project: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    host = FakeReleaseHost()

    def fake_build_host(settings: Settings) -> ReleaseHost | None:
        return host

    def fake_run(
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        if cmd[0] == "pack":
            full = f"app-{cmd[1]}-full.nupkg"
            (Path(cmd[2]) / full).write_bytes(b"full")
            (Path(cmd[2]) / "RELEASES").write_text(f"h {full} 4\n", encoding="utf-8")
        return Ok("")

    monkeypatch.setattr(context_module, "build_host", fake_build_host)
    monkeypatch.setattr(build_module, "run_process", fake_run)

    result = runner.invoke(app, ["deploy", "--tag", "2.0.0", "--upload"])

    assert result.exit_code == 0, result.output
    assert host.calls_of("upload") == ["app-2.0.0-full.nupkg", "RELEASES"]
    assert host.releases[0].tag == "2.0.0"
    assert "Done! 2.0.0" in result.output
