"""Typed configuration loading and access.

``kdeploy.toml`` is parsed once into frozen dataclasses. The resolved
``Settings`` value (config + project root + credential) is then passed
explicitly to every component; nothing below the CLI reads the environment.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)

__all__ = [
    "CONFIG_FILENAME",
    "TOKEN_ENV_VARS",
    "BuildConfig",
    "Config",
    "ConfigError",
    "GitHubConfig",
    "PackageConfig",
    "PathsConfig",
    "RetentionConfig",
    "Settings",
    "VersionConfig",
    "load_config",
    "resolve_token",
]

CONFIG_FILENAME = "kdeploy.toml"

# First non-empty wins.
TOKEN_ENV_VARS = ("KDEPLOY_GITHUB_TOKEN", "GITHUB_TOKEN")

DEFAULT_KEEP_DELTAS = 4
DEFAULT_BUILD_TIMEOUT_SECONDS = 30 * 60


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class GitHubConfig:
    """Repository hosting the release line."""

    owner: str | None = None
    repo: str | None = None
    upload: bool = False

    @property
    def slug(self) -> str | None:
        if not self.owner or not self.repo:
            return None
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True, slots=True)
class PackageConfig:
    """Package naming conventions.

    The markers decide how manifest records are classified; they are plain
    substrings of the file name, not tool-specific knowledge.
    """

    name: str = "app"
    extension: str = ".nupkg"
    full_marker: str = "-full"
    delta_marker: str = "-delta"
    manifest: str = "RELEASES"
    installer: str | None = None
    installer_target: str = "install.exe"

    def full_package_name(self, version: str) -> str:
        """File name of the full package built for ``version``."""
        return f"{self.name}-{version}{self.full_marker}{self.extension}"


@dataclass(frozen=True, slots=True)
class RetentionConfig:
    keep_deltas: int = DEFAULT_KEEP_DELTAS
    proceed_on_error: bool = False


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Directories relative to the project root."""

    staging: str = "staging"
    releases: str = "releases"


@dataclass(frozen=True, slots=True)
class VersionConfig:
    increment: bool = True


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Toolchain invocations.

    ``steps`` produce the package in the staging dir; ``release_steps`` turn it
    into full/delta artifacts inside the releases dir. Arguments may use the
    ``{version}``, ``{staging}`` and ``{releases}`` placeholders.
    """

    steps: tuple[tuple[str, ...], ...] = ()
    release_steps: tuple[tuple[str, ...], ...] = ()
    timeout: float = DEFAULT_BUILD_TIMEOUT_SECONDS


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    github: GitHubConfig = field(default_factory=GitHubConfig)
    package: PackageConfig = field(default_factory=PackageConfig)
    retention: RetentionConfig = field(default_factory=RetentionConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    version: VersionConfig = field(default_factory=VersionConfig)
    build: BuildConfig = field(default_factory=BuildConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: If a value has the right type but an invalid range.
            TypeError: If a build step is not a list of strings.
        """
        github: StrDict = get_table(data, "github") or {}
        package: StrDict = get_table(data, "package") or {}
        retention: StrDict = get_table(data, "retention") or {}
        paths: StrDict = get_table(data, "paths") or {}
        version: StrDict = get_table(data, "version") or {}
        build: StrDict = get_table(data, "build") or {}

        keep = get_int(retention, "keep_deltas")
        if keep is None:
            keep = DEFAULT_KEEP_DELTAS
        if keep < 0:
            raise ValueError(f"retention.keep_deltas must be >= 0, got {keep}")

        defaults = PackageConfig()
        pkg = PackageConfig(
            name=get_str(package, "name") or defaults.name,
            extension=get_str(package, "extension") or defaults.extension,
            full_marker=get_str(package, "full_marker") or defaults.full_marker,
            delta_marker=get_str(package, "delta_marker") or defaults.delta_marker,
            manifest=get_str(package, "manifest") or defaults.manifest,
            installer=get_str(package, "installer"),
            installer_target=get_str(package, "installer_target") or defaults.installer_target,
        )
        if pkg.full_marker == pkg.delta_marker:
            raise ValueError("package.full_marker and package.delta_marker must differ")

        timeout = get_int(build, "timeout")

        return cls(
            github=GitHubConfig(
                owner=get_str(github, "owner"),
                repo=get_str(github, "repo"),
                upload=bool(get_bool(github, "upload")),
            ),
            package=pkg,
            retention=RetentionConfig(
                keep_deltas=keep,
                proceed_on_error=bool(get_bool(retention, "proceed_on_error")),
            ),
            paths=PathsConfig(
                staging=get_str(paths, "staging") or "staging",
                releases=get_str(paths, "releases") or "releases",
            ),
            version=VersionConfig(
                increment=get_bool(version, "increment") is not False,
            ),
            build=BuildConfig(
                steps=_parse_steps(build, "steps"),
                release_steps=_parse_steps(build, "release_steps"),
                timeout=float(timeout) if timeout else DEFAULT_BUILD_TIMEOUT_SECONDS,
            ),
        )


def _parse_steps(table: Mapping[str, object], key: str) -> tuple[tuple[str, ...], ...]:
    raw = get_list(table, key)
    if raw is None:
        return ()

    steps: list[tuple[str, ...]] = []
    for index, item in enumerate(raw):
        argv = get_str_list({"argv": item}, "argv")
        if not argv:
            raise TypeError(f"build.{key}[{index}] must be a non-empty list of strings")
        steps.append(tuple(argv))
    return tuple(steps)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and syntax errors."""
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(
            ConfigError(
                f"Config file not found: {path}",
                path=path,
                hint=f"Create {CONFIG_FILENAME} in the project root",
            )
        )
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to kdeploy.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def resolve_token(env: Mapping[str, str]) -> str | None:
    """Pick the GitHub token from an environment mapping."""
    for name in TOKEN_ENV_VARS:
        value = env.get(name, "").strip()
        if value:
            return value
    return None


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable runtime settings handed to every component."""

    root: Path
    config: Config = field(default_factory=Config)
    token: str | None = None

    @property
    def staging_dir(self) -> Path:
        return self.root / self.config.paths.staging

    @property
    def releases_dir(self) -> Path:
        return self.root / self.config.paths.releases

    @property
    def manifest_path(self) -> Path:
        return self.releases_dir / self.config.package.manifest

    @property
    def remote_enabled(self) -> bool:
        """True when both a token and a repository are configured."""
        return bool(self.token) and self.config.github.slug is not None
