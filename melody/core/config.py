"""Typed configuration loading.

Configuration is read exactly once, at the CLI boundary, from an optional
``.melody.toml`` at the repository root plus two environment variables
(``GITLAB_HOST``, ``GITLAB_ACCESS_TOKEN``). The resulting frozen ``Config``
is passed into every collaborator that needs it.

Example ``.melody.toml``:

    remote = "origin"
    develop_branch = "develop"
    main_branch = "master"
    manifest = "package.json"
    lock_file = "package-lock.json"
    changelog = "CHANGELOG.md"

    [gitlab]
    host = "https://gitlab.example.com"

    [merge_request]
    enabled = false
    label = "release"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_str, get_table

__all__ = [
    "CONFIG_FILE_NAME",
    "Config",
    "ConfigError",
    "GitLabConfig",
    "MergeRequestConfig",
    "apply_environment",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = ".melody.toml"

DEFAULT_GITLAB_HOST = "https://gitlab.com"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class GitLabConfig:
    """Remote hosting service connection settings."""

    host: str = DEFAULT_GITLAB_HOST
    token: str | None = None


@dataclass(frozen=True, slots=True)
class MergeRequestConfig:
    """Settings for the optional merge request step of the finish flow.

    Disabled unless `[merge_request] enabled = true` is set.
    """

    enabled: bool = False
    label: str = "release"


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    remote: str = "origin"
    develop_branch: str = "develop"
    main_branch: str = "master"
    release_prefix: str = "release/"
    manifest: str = "package.json"
    lock_file: str = "package-lock.json"
    changelog: str = "CHANGELOG.md"
    prerelease_id: str | None = None
    gitlab: GitLabConfig = field(default_factory=GitLabConfig)
    merge_request: MergeRequestConfig = field(default_factory=MergeRequestConfig)

    def release_branch(self, version: str) -> str:
        return f"{self.release_prefix}{version}"

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        gitlab: StrDict = get_table(data, "gitlab") or {}
        mr: StrDict = get_table(data, "merge_request") or {}
        defaults = cls()

        enabled = get_bool(mr, "enabled")
        return cls(
            remote=get_str(data, "remote") or defaults.remote,
            develop_branch=get_str(data, "develop_branch") or defaults.develop_branch,
            main_branch=get_str(data, "main_branch") or defaults.main_branch,
            release_prefix=get_str(data, "release_prefix") or defaults.release_prefix,
            manifest=get_str(data, "manifest") or defaults.manifest,
            lock_file=get_str(data, "lock_file") or defaults.lock_file,
            changelog=get_str(data, "changelog") or defaults.changelog,
            prerelease_id=get_str(data, "prerelease_id"),
            gitlab=GitLabConfig(
                host=(get_str(gitlab, "host") or DEFAULT_GITLAB_HOST).rstrip("/"),
                token=get_str(gitlab, "token"),
            ),
            merge_request=MergeRequestConfig(
                enabled=enabled if enabled is not None else False,
                label=get_str(mr, "label") or "release",
            ),
        )


def apply_environment(config: Config, env: Mapping[str, str]) -> Config:
    """Overlay GitLab host/token from the process environment.

    Environment values win over the config file so tokens never need to be
    committed.
    """
    host = (env.get("GITLAB_HOST") or "").strip()
    token = (env.get("GITLAB_ACCESS_TOKEN") or "").strip()
    gitlab = replace(
        config.gitlab,
        host=host.rstrip("/") if host else config.gitlab.host,
        token=token or config.gitlab.token,
    )
    return replace(config, gitlab=gitlab)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to .melody.toml

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


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, defaults otherwise.

    A present but broken file is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
