"""Configuration models and helpers for spotictl."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_API_PREFIX = "https://api.spotify.com/v1/"
DEFAULT_MPRIS_SERVICE = "org.mpris.MediaPlayer2.spotify"
DEFAULT_MPRIS_PATH = "/org/mpris/MediaPlayer2"
MAX_PAGE_SIZE = 50


@dataclass(frozen=True)
class BootstrapReport:
    """Summary of files/directories created during initialisation."""

    base_created: bool
    global_config_created: bool
    global_config_overwritten: bool


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be parsed or are invalid."""


@dataclass(frozen=True)
class ConfigPaths:
    """Resolved filesystem locations used by the application."""

    base_dir: Path
    global_config: Path

    @classmethod
    def default(cls) -> "ConfigPaths":
        """Return default locations under the user's home directory."""

        base = Path.home() / ".spotictl"
        return cls.from_base_dir(base)

    @classmethod
    def from_base_dir(cls, base_dir: Path) -> "ConfigPaths":
        """Construct paths using ``base_dir`` as root."""

        base_dir = base_dir.expanduser()
        return cls(base_dir=base_dir, global_config=base_dir / "config.yml")


class SpotifySettings(BaseModel):
    """Spotify Web API credentials and endpoint.

    Empty credentials fall back to spotipy's ``SPOTIPY_CLIENT_ID`` and
    ``SPOTIPY_CLIENT_SECRET`` environment variables.
    """

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    api_prefix: str = Field(default=DEFAULT_API_PREFIX)
    requests_timeout: float = Field(default=30.0, gt=0.0)

    model_config = ConfigDict(extra="forbid")


class ProcessSettings(BaseModel):
    """Desktop application process to manage."""

    name: str = Field(default="spotify", min_length=1)
    executable: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class MprisSettings(BaseModel):
    """Location of the player's MPRIS object on the session bus."""

    service_name: str = Field(default=DEFAULT_MPRIS_SERVICE)
    object_path: str = Field(default=DEFAULT_MPRIS_PATH)

    model_config = ConfigDict(extra="forbid")


class SearchSettings(BaseModel):
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)

    model_config = ConfigDict(extra="forbid")


class RuntimeSettings(BaseModel):
    """Runtime-level defaults."""

    log_level: str = Field(default="WARNING")

    model_config = ConfigDict(extra="forbid")


class GlobalConfig(BaseModel):
    """Top-level configuration file model."""

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    process: ProcessSettings = Field(default_factory=ProcessSettings)
    mpris: MprisSettings = Field(default_factory=MprisSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)

    model_config = ConfigDict(extra="forbid")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse YAML file: {path}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at top level of {path}")
    return data


def load_global_config(path: Path) -> GlobalConfig:
    """Load and validate the global configuration file.

    A missing file yields the built-in defaults so that player commands work
    before ``spotictl init`` has ever been run.
    """

    if not path.exists():
        return GlobalConfig()

    payload = _read_yaml(path)
    try:
        return GlobalConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def _default_global_config() -> Dict[str, Any]:
    """Dictionary representing the starter global configuration."""

    return {
        "spotify": {
            "client_id": "",
            "client_secret": "",
            "api_prefix": DEFAULT_API_PREFIX,
            "requests_timeout": 30,
        },
        "process": {
            "name": "spotify",
        },
        "mpris": {
            "service_name": DEFAULT_MPRIS_SERVICE,
            "object_path": DEFAULT_MPRIS_PATH,
        },
        "search": {
            "page_size": MAX_PAGE_SIZE,
        },
        "runtime": {
            "log_level": "WARNING",
        },
    }


def _write_yaml(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)


def bootstrap(paths: ConfigPaths, overwrite: bool = False) -> BootstrapReport:
    """Ensure the configuration directory and file exist.

    Parameters
    ----------
    paths:
        Target filesystem layout.
    overwrite:
        When ``True`` the global config file is re-written even if it already exists.
    """

    base_created = False
    global_config_created = False
    global_config_overwritten = False

    if not paths.base_dir.exists():
        paths.base_dir.mkdir(parents=True, exist_ok=True)
        base_created = True

    existing_global = paths.global_config.exists()
    if not existing_global or overwrite:
        _write_yaml(paths.global_config, _default_global_config())
        global_config_created = True
        global_config_overwritten = existing_global and overwrite

    return BootstrapReport(
        base_created=base_created,
        global_config_created=global_config_created,
        global_config_overwritten=global_config_overwritten,
    )
