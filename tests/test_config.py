from pathlib import Path

import pytest
import yaml

from spotictl.app_context import determine_paths, load_context
from spotictl.config import (
    DEFAULT_API_PREFIX,
    DEFAULT_MPRIS_SERVICE,
    ConfigError,
    ConfigPaths,
    bootstrap,
    load_global_config,
)


def _write_config(path: Path, payload) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_missing_config_yields_defaults(tmp_path):
    config = load_global_config(tmp_path / "config.yml")

    assert config.spotify.api_prefix == DEFAULT_API_PREFIX
    assert config.process.name == "spotify"
    assert config.mpris.service_name == DEFAULT_MPRIS_SERVICE
    assert config.search.page_size == 50


def test_bootstrap_writes_loadable_defaults(tmp_path):
    paths = ConfigPaths.from_base_dir(tmp_path / "spotictl")

    report = bootstrap(paths)

    assert report.base_created
    assert report.global_config_created
    assert not report.global_config_overwritten
    config = load_global_config(paths.global_config)
    assert config.spotify.client_id == ""
    assert config.runtime.log_level == "WARNING"


def test_bootstrap_keeps_existing_file_unless_forced(tmp_path):
    paths = ConfigPaths.from_base_dir(tmp_path)
    _write_config(paths.global_config, {"process": {"name": "spotify-launcher"}})

    report = bootstrap(paths)
    assert not report.global_config_created
    assert load_global_config(paths.global_config).process.name == "spotify-launcher"

    report = bootstrap(paths, overwrite=True)
    assert report.global_config_overwritten
    assert load_global_config(paths.global_config).process.name == "spotify"


def test_partial_config_keeps_other_defaults(tmp_path):
    path = tmp_path / "config.yml"
    _write_config(path, {"search": {"page_size": 20}, "spotify": {"client_id": "abc"}})

    config = load_global_config(path)

    assert config.search.page_size == 20
    assert config.spotify.client_id == "abc"
    assert config.spotify.requests_timeout == 30


@pytest.mark.parametrize(
    "payload",
    [
        {"search": {"page_size": 51}},
        {"search": {"page_size": 0}},
        {"spotify": {"requests_timeout": 0}},
        {"unknown": {}},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_config_raises(tmp_path, payload):
    path = tmp_path / "config.yml"
    _write_config(path, payload)

    with pytest.raises(ConfigError):
        load_global_config(path)


def test_malformed_yaml_raises(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("spotify: [unterminated", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_global_config(path)


def test_context_uses_config_dir_override(tmp_path):
    _write_config(tmp_path / "config.yml", {"mpris": {"service_name": "org.mpris.MediaPlayer2.spotifyd"}})

    context = load_context(determine_paths(tmp_path))

    assert context.paths.base_dir == tmp_path
    assert context.global_config.mpris.service_name == "org.mpris.MediaPlayer2.spotifyd"
