"""Toolchain invocation.

The toolchain itself (compile/publish, pack, delta generation) is external;
this service only expands the configured argv templates and runs them.
Placeholders: ``{version}``, ``{staging}``, ``{releases}``.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path

from kdeploy.core.config import Settings
from kdeploy.core.result import Err, Ok, Result
from kdeploy.output.console import ConsoleProtocol, Style
from kdeploy.platform.files import refresh_directory
from kdeploy.platform.process import run as run_process
from kdeploy.services.build_errors import (
    BuildError,
    InstallerMissing,
    InstallerRenameFailed,
    StagingFailed,
    StepFailed,
)

__all__ = ["BuildService", "expand_step"]


def expand_step(argv: Sequence[str], *, version: str, staging: Path, releases: Path) -> list[str]:
    """Substitute placeholders; other braces are left untouched."""
    values = {
        "{version}": version,
        "{staging}": str(staging),
        "{releases}": str(releases),
    }
    out: list[str] = []
    for arg in argv:
        for token, value in values.items():
            arg = arg.replace(token, value)
        out.append(arg)
    return out


class BuildService:
    def __init__(self, *, settings: Settings, console: ConsoleProtocol) -> None:
        self._settings = settings
        self._console = console

    def refresh_staging(self) -> Result[Path, BuildError]:
        staging = self._settings.staging_dir
        try:
            refresh_directory(staging)
        except OSError as e:
            return Err(StagingFailed(path=staging, reason=str(e)))
        return Ok(staging)

    def build(self, version: str) -> Result[None, BuildError]:
        """Compile and pack into the staging directory."""
        return self._run_steps(self._settings.config.build.steps, version=version)

    def package(self, version: str) -> Result[None, BuildError]:
        """Produce full/delta artifacts in the releases directory."""
        return self._run_steps(self._settings.config.build.release_steps, version=version)

    def finalize_installer(self) -> Result[Path | None, BuildError]:
        """Rename the packager's setup executable to the configured target name.

        Returns Ok(None) when no installer is configured.
        """
        package = self._settings.config.package
        if package.installer is None:
            return Ok(None)

        releases = self._settings.releases_dir
        source = releases / package.installer
        target = releases / package.installer_target
        if not source.is_file():
            return Err(InstallerMissing(path=source))

        try:
            shutil.copyfile(source, target)
            source.unlink()
        except OSError as e:
            return Err(InstallerRenameFailed(path=source, reason=str(e)))
        return Ok(target)

    def _run_steps(self, steps: Sequence[Sequence[str]], *, version: str) -> Result[None, BuildError]:
        settings = self._settings
        for step in steps:
            argv = expand_step(
                step,
                version=version,
                staging=settings.staging_dir,
                releases=settings.releases_dir,
            )
            self._console.print(f"Running: {' '.join(argv)}", Style.DIM)
            result = run_process(argv, cwd=settings.root, timeout=settings.config.build.timeout)
            if isinstance(result, Err):
                self._console.print("Command failed!", Style.ERROR)
                return Err(
                    StepFailed(
                        step=tuple(argv),
                        returncode=result.error.returncode,
                        output=result.error.output,
                    )
                )
        return Ok(None)
