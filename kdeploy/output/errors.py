"""Error presentation utilities.

One place maps every deploy error value to console output and an exit code.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kdeploy.core.config import ConfigError
from kdeploy.core.errors import ErrorCode
from kdeploy.output.console import Style
from kdeploy.release.errors import (
    DownloadError,
    MalformedManifestError,
    RetentionIOError,
    UploadError,
)
from kdeploy.services.build_errors import (
    InstallerMissing,
    InstallerRenameFailed,
    StagingFailed,
    StepFailed,
    VersionInvalid,
)

if TYPE_CHECKING:
    from kdeploy.output.console import ConsoleProtocol
    from kdeploy.services.deploy import DeployError

__all__ = ["deploy_error_exit_code", "print_config_error", "print_deploy_error"]

_OUTPUT_TAIL_LINES = 20


def _hint(console: ConsoleProtocol, hint: str | None) -> None:
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def print_deploy_error(error: DeployError, console: ConsoleProtocol) -> None:
    """Print a deploy error with appropriate formatting."""
    match error:
        case MalformedManifestError(message=message):
            console.error(f"malformed manifest: {message}")
            _hint(console, error.hint)
        case RetentionIOError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case DownloadError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint)
        case UploadError(message=message, hint=hint):
            console.error(message)
            _hint(console, hint or "The release is still a draft; re-run publish to resume")
        case StepFailed(step=step, returncode=rc, output=output):
            console.error(f"{step[0]} failed (exit {rc})")
            for line in output.strip().splitlines()[-_OUTPUT_TAIL_LINES:]:
                console.print(line, Style.DIM)
        case StagingFailed(path=path, reason=reason):
            console.error(f"cannot recreate staging dir {path}: {reason}")
        case InstallerMissing(path=path):
            console.error(f"installer not found: {path}")
        case InstallerRenameFailed(path=path, reason=reason):
            console.error(f"cannot rename installer {path}: {reason}")
        case VersionInvalid(tag=tag, reason=reason):
            console.error(f"cannot derive version from tag {tag}: {reason}")
            _hint(console, "Pass --version explicitly")


def deploy_error_exit_code(error: DeployError) -> int:
    match error:
        case MalformedManifestError():
            return int(ErrorCode.MANIFEST_ERROR)
        case RetentionIOError():
            return int(ErrorCode.IO_ERROR)
        case DownloadError(kind="filesystem") | UploadError(kind="filesystem"):
            return int(ErrorCode.IO_ERROR)
        case DownloadError(kind="invalid_manifest"):
            return int(ErrorCode.MANIFEST_ERROR)
        case DownloadError() | UploadError():
            return int(ErrorCode.NETWORK_ERROR)
        case StepFailed() | InstallerMissing():
            return int(ErrorCode.BUILD_ERROR)
        case StagingFailed() | InstallerRenameFailed():
            return int(ErrorCode.IO_ERROR)
        case VersionInvalid():
            return int(ErrorCode.USER_ERROR)
    return int(ErrorCode.BUILD_ERROR)


def print_config_error(error: ConfigError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    _hint(console, error.hint)
