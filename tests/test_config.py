"""Tests for the JSON settings file."""

import json
from pathlib import Path

import pytest

from vidtagger import config


def test_defaults_without_config_file(isolated_config: Path) -> None:
    """With no config file every getter returns its default."""
    assert not isolated_config.exists()
    settings = config.load_settings()
    assert settings == config.Settings()
    assert config.get_last_root_dir() is None


def test_config_path_from_environment(isolated_config: Path) -> None:
    """VIDTAGGER_CONFIG picks the config file."""
    assert config.get_config_path() == str(isolated_config)


def test_set_and_get_round_trip(isolated_config: Path, tmp_path: Path) -> None:
    """Setters persist values that the getters read back."""
    config.set_last_root_dir(str(tmp_path))
    config.set_collision_policy("keep_first")
    config.set_untagged_pass(False)
    config.set_volume(0.25)
    config.set_size_scale(1.5)
    assert config.get_last_root_dir() == str(tmp_path)
    settings = config.load_settings()
    assert settings.collision_policy == "keep_first"
    assert settings.untagged_pass is False
    assert settings.volume == 0.25
    assert config.get_size_scale() == 1.5
    assert json.loads(isolated_config.read_text(encoding="utf-8"))["untagged_pass"] is False


def test_bad_values_fall_back_to_defaults(isolated_config: Path) -> None:
    """Garbage in the config file never breaks startup."""
    isolated_config.write_text(json.dumps({
        "collision_policy": "namespace",
        "untagged_pass": "maybe",
        "hash_workers": "lots",
        "volume": "loud",
        "size_scale": 99,
        "sidecar_name": "../escape.json",
        "tags_path": "",
    }), encoding="utf-8")
    settings = config.load_settings()
    assert settings == config.Settings()
    assert config.get_size_scale() == config.MAX_SIZE_SCALE


def test_unreadable_config_is_ignored(isolated_config: Path) -> None:
    """A corrupt config file reads as empty."""
    isolated_config.write_text("{broken", encoding="utf-8")
    assert config.load_config() == {}


def test_set_collision_policy_rejects_unknown() -> None:
    """Only known collision policies can be saved."""
    with pytest.raises(ValueError):
        config.set_collision_policy("namespace")


def test_custom_paths(isolated_config: Path) -> None:
    """tags_path, sidecar_name and hash_workers are read from the file."""
    isolated_config.write_text(json.dumps({
        "tags_path": "/data/tags.json",
        "sidecar_name": ".vt.json",
        "hash_workers": 8,
    }), encoding="utf-8")
    settings = config.load_settings()
    assert settings.tags_path == "/data/tags.json"
    assert settings.sidecar_name == ".vt.json"
    assert settings.hash_workers == 8
