from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from kdeploy.core.config import CONFIG_FILENAME, Settings, load_config, resolve_token
from kdeploy.core.errors import ErrorCode
from kdeploy.core.result import Err
from kdeploy.output.console import RichConsole
from kdeploy.output.errors import print_config_error
from kdeploy.remote.github import GitHubReleaseHost
from kdeploy.remote.host import ReleaseHost
from kdeploy.remote.http import RealHttpClient

ROOT_ENV_VAR = "KDEPLOY_ROOT"


@dataclass(frozen=True, slots=True)
class CLIContext:
    settings: Settings
    console: RichConsole
    host: ReleaseHost | None


def find_project_root(start: Path) -> Path | None:
    """Nearest directory (start or a parent) holding kdeploy.toml."""
    for parent in (start, *start.parents):
        if (parent / CONFIG_FILENAME).is_file():
            return parent
    return None


def build_host(settings: Settings) -> ReleaseHost | None:
    """Resolve the remote capability once: a host, or None without credentials."""
    github = settings.config.github
    if not settings.remote_enabled or github.owner is None or github.repo is None:
        return None
    return GitHubReleaseHost(
        RealHttpClient(token=settings.token),
        owner=github.owner,
        repo=github.repo,
    )


def build_context() -> CLIContext:
    console = RichConsole()

    env_root = os.environ.get(ROOT_ENV_VAR)
    start = Path(env_root) if env_root else Path.cwd()
    root = find_project_root(start.resolve())
    if root is None:
        console.error(f"{CONFIG_FILENAME} not found in {start} or its parents")
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    config_result = load_config(root / CONFIG_FILENAME)
    if isinstance(config_result, Err):
        print_config_error(config_result.error, console)
        raise typer.Exit(code=int(ErrorCode.CONFIG_ERROR))

    settings = Settings(
        root=root,
        config=config_result.value,
        token=resolve_token(os.environ),
    )
    return CLIContext(settings=settings, console=console, host=build_host(settings))
