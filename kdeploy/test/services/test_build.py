"""Tests for kdeploy.services.build module."""

from __future__ import annotations

from pathlib import Path

import pytest

from kdeploy.core.config import BuildConfig, Config, PackageConfig, Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import MockConsole
from kdeploy.platform.process import ProcessError
from kdeploy.services import build as build_module
from kdeploy.services.build import BuildService, expand_step
from kdeploy.services.build_errors import InstallerMissing, StepFailed


class RecordingRunner:
    """Stands in for ``run_process``; fails commands named in ``failing``."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.commands: list[list[str]] = []
        self.failing = failing or set()

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        self.commands.append(cmd)
        if cmd[0] in self.failing:
            return Err(ProcessError(tuple(cmd), 2, "partial output\n", "fatal: boom\n"))
        return Ok("")


def _settings(tmp_path: Path, **build: object) -> Settings:
    return Settings(
        root=tmp_path,
        config=Config(
            build=BuildConfig(**build),  # type: ignore[arg-type]
            package=PackageConfig(installer="appSetup.exe"),
        ),
    )


class TestExpandStep:
    def test_placeholders(self) -> None:
        argv = expand_step(
            ["pack", "/p:Version={version}", "--out={staging}", "{releases}", "{other}"],
            version="1.2.3",
            staging=Path("/s"),
            releases=Path("/r"),
        )
        assert argv == ["pack", "/p:Version=1.2.3", f"--out={Path('/s')}", str(Path("/r")), "{other}"]


class TestBuildService:
    def test_build_runs_steps_in_order(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = RecordingRunner()
        monkeypatch.setattr(build_module, "run_process", runner)
        settings = _settings(tmp_path, steps=(("compile", "{version}"), ("pack", "{staging}")))

        result = BuildService(settings=settings, console=MockConsole()).build("1.0")

        assert result == Ok(None)
        assert runner.commands == [["compile", "1.0"], ["pack", str(tmp_path / "staging")]]

    def test_package_runs_release_steps(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = RecordingRunner()
        monkeypatch.setattr(build_module, "run_process", runner)
        settings = _settings(tmp_path, release_steps=(("releasify", "{releases}"),))

        BuildService(settings=settings, console=MockConsole()).package("1.0")

        assert runner.commands == [["releasify", str(tmp_path / "releases")]]

    def test_failing_step_stops_run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        runner = RecordingRunner(failing={"compile"})
        monkeypatch.setattr(build_module, "run_process", runner)
        settings = _settings(tmp_path, steps=(("compile",), ("pack",)))
        console = MockConsole()

        result = BuildService(settings=settings, console=console).build("1.0")

        assert isinstance(result, Err)
        assert isinstance(result.error, StepFailed)
        assert result.error.returncode == 2
        assert "fatal: boom" in result.error.output
        assert runner.commands == [["compile"]]
        assert console.find("Command failed!")

    def test_refresh_staging_empties_directory(self, tmp_path: Path) -> None:
        staging = tmp_path / "staging"
        staging.mkdir()
        (staging / "leftover.dll").write_bytes(b"x")

        result = BuildService(settings=_settings(tmp_path), console=MockConsole()).refresh_staging()

        assert result == Ok(staging)
        assert staging.is_dir()
        assert list(staging.iterdir()) == []

    def test_finalize_installer_renames(self, tmp_path: Path) -> None:
        releases = tmp_path / "releases"
        releases.mkdir()
        (releases / "appSetup.exe").write_bytes(b"setup")

        result = BuildService(settings=_settings(tmp_path), console=MockConsole()).finalize_installer()

        assert result == Ok(releases / "install.exe")
        assert (releases / "install.exe").read_bytes() == b"setup"
        assert not (releases / "appSetup.exe").exists()

    def test_finalize_installer_missing(self, tmp_path: Path) -> None:
        (tmp_path / "releases").mkdir()

        result = BuildService(settings=_settings(tmp_path), console=MockConsole()).finalize_installer()

        assert isinstance(result, Err)
        assert isinstance(result.error, InstallerMissing)

    def test_finalize_installer_not_configured(self, tmp_path: Path) -> None:
        settings = Settings(root=tmp_path)

        result = BuildService(settings=settings, console=MockConsole()).finalize_installer()

        assert result == Ok(None)
