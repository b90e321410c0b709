"""Tests for opscribe.config -- XDG paths, atomic writes, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from opscribe.config import (
    _atomic_write,
    get_config_dir,
    get_data_dir,
    load_global_config,
    load_project_config,
    resolve_config,
    save_global_config,
    set_config_value,
)
from opscribe.exceptions import ConfigError
from opscribe.models import GlobalConfig, OutputConfig, ResolverConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    """Write a dict as JSON to *path*, creating parent dirs."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPathsLinux:
    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_config_dir()
        assert result == tmp_path / ".config" / "opscribe"
        assert result.is_dir()

    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        custom = tmp_path / "custom_config"
        monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(custom))

        assert get_config_dir() == custom / "opscribe"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        result = get_data_dir()
        assert result == tmp_path / ".local" / "share" / "opscribe"
        assert result.is_dir()


class TestXDGPathsFallback:
    def test_config_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_config_dir() == tmp_path / ".opscribe"

    def test_data_dir_fallback(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("opscribe.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert get_data_dir() == tmp_path / ".opscribe" / "logs"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_file_with_content(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "hello world")
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_overwrites_existing_file(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        target.write_text("old content", encoding="utf-8")
        _atomic_write(target, "new content")
        assert target.read_text(encoding="utf-8") == "new content"

    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "test.txt"
        _atomic_write(target, "deep write")
        assert target.read_text(encoding="utf-8") == "deep write"

    def test_no_temp_files_left_on_success(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        _atomic_write(target, "content")
        assert list(tmp_path.iterdir()) == [target]

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "test.txt"
        with patch("opscribe.config.os.fsync", side_effect=OSError("disk error")):
            with pytest.raises(OSError, match="disk error"):
                _atomic_write(target, "will fail")
        assert list(tmp_path.iterdir()) == []


# ---------------------------------------------------------------------------
# Global config
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_load_returns_defaults_when_missing(self, isolated_config: Path) -> None:
        assert load_global_config() == GlobalConfig()

    def test_save_and_load_roundtrip(self, isolated_config: Path) -> None:
        config = GlobalConfig(
            resolver=ResolverConfig(max_depth=8, concurrency="reject"),
            output=OutputConfig(format="json"),
        )
        save_global_config(config)
        assert load_global_config() == config

    def test_saved_file_location(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig())
        path = isolated_config / "config" / "opscribe" / "config.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["resolver"]["max_files"] == 256

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        path = isolated_config / "config" / "opscribe" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()

    def test_load_invalid_values_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(
            isolated_config / "config" / "opscribe" / "config.json",
            {"resolver": {"max_depth": 0}},
        )
        with pytest.raises(ConfigError):
            load_global_config()


class TestSetConfigValue:
    def test_resolver_value(self) -> None:
        updated = set_config_value(GlobalConfig(), "resolver.max_depth", "12")
        assert updated.resolver.max_depth == 12

    def test_output_format(self) -> None:
        updated = set_config_value(GlobalConfig(), "output.format", "plain")
        assert updated.output.format == "plain"

    def test_none_clears_optional_value(self) -> None:
        config = GlobalConfig(resolver=ResolverConfig(timeout_seconds=5))
        updated = set_config_value(config, "resolver.timeout_seconds", "none")
        assert updated.resolver.timeout_seconds is None

    def test_original_untouched(self) -> None:
        config = GlobalConfig()
        set_config_value(config, "resolver.max_files", "3")
        assert config.resolver.max_files == 256

    @pytest.mark.parametrize("key", ["depth", "resolver.depth", "cache.ttl", "resolver."])
    def test_unknown_key(self, key: str) -> None:
        with pytest.raises(ConfigError, match="Unknown config key"):
            set_config_value(GlobalConfig(), key, "1")

    @pytest.mark.parametrize(
        ("key", "value"),
        [("resolver.max_depth", "deep"), ("resolver.concurrency", "parallel"), ("resolver.max_files", "0")],
    )
    def test_invalid_value(self, key: str, value: str) -> None:
        with pytest.raises(ConfigError, match="Invalid value"):
            set_config_value(GlobalConfig(), key, value)


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_load_returns_none_when_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_load_valid_project_config(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "opscribe.json", {"resolver": {"max_depth": 16}})
        assert load_project_config() == {"resolver": {"max_depth": 16}}

    def test_load_invalid_json_raises_config_error(self, isolated_config: Path) -> None:
        (isolated_config / "opscribe.json").write_text("not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_non_object_raises_config_error(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "opscribe.json", [1, 2])
        with pytest.raises(ConfigError, match="expected an object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """The full precedence chain: CLI > env > project > global > defaults."""

    def test_defaults(self, isolated_config: Path) -> None:
        assert resolve_config() == GlobalConfig()

    def test_global_values_used(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(resolver=ResolverConfig(max_depth=10)))
        assert resolve_config().resolver.max_depth == 10

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(resolver=ResolverConfig(max_depth=10, max_files=50)))
        _write_json(isolated_config / "opscribe.json", {"resolver": {"max_depth": 16}})
        resolver = resolve_config().resolver
        assert resolver.max_depth == 16
        assert resolver.max_files == 50

    def test_env_overrides_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_json(isolated_config / "opscribe.json", {"resolver": {"max_depth": 16}})
        monkeypatch.setenv("OPSCRIBE_MAX_DEPTH", "4")
        monkeypatch.setenv("OPSCRIBE_CONCURRENCY", "reject")
        monkeypatch.setenv("OPSCRIBE_TIMEOUT", "2.5")
        resolver = resolve_config().resolver
        assert resolver.max_depth == 4
        assert resolver.concurrency == "reject"
        assert resolver.timeout_seconds == 2.5

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPSCRIBE_MAX_FILES", "40")
        resolver = resolve_config(cli_max_depth=3, cli_max_files=7).resolver
        assert (resolver.max_depth, resolver.max_files) == (3, 7)

    def test_cli_format_overrides_global(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(output=OutputConfig(format="plain")))
        assert resolve_config(cli_format="json").output.format == "json"
        assert resolve_config().output.format == "plain"

    def test_invalid_env_value_raises(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OPSCRIBE_MAX_DEPTH", "lots")
        with pytest.raises(ConfigError, match="Invalid resolver settings"):
            resolve_config()

    def test_invalid_project_section_raises(self, isolated_config: Path) -> None:
        _write_json(isolated_config / "opscribe.json", {"resolver": "deep"})
        with pytest.raises(ConfigError, match="must be an object"):
            resolve_config()
