"""Tests for settings loading."""

from datetime import timedelta
from pathlib import Path

import pytest

from version_lsp.config import Settings, data_dir, load_settings, parse_duration_ms
from version_lsp.errors import ConfigError
from version_lsp.registry import default_registries
from version_lsp.common.http_client import HttpClient
from version_lsp.versioning.models import RegistryType


class TestDataDir:
    """XDG data directory resolution."""

    def test_xdg_data_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert data_dir() == tmp_path / "version-lsp"

    def test_home_fallback(self, monkeypatch, tmp_path):
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert data_dir() == tmp_path / ".local" / "share" / "version-lsp"


class TestDurations:
    """Durations accept milliseconds or unit suffixes."""

    @pytest.mark.parametrize("value,expected", [
        (86400000, 86400000),
        ("500ms", 500),
        ("90s", 90000),
        ("12h", 43200000),
        ("1d", 86400000),
        ("250", 250),
    ])
    def test_parse(self, value, expected):
        assert parse_duration_ms(value) == expected

    @pytest.mark.parametrize("value", ["soon", -1, True, None])
    def test_invalid(self, value):
        with pytest.raises(ConfigError):
            parse_duration_ms(value)


class TestSettingsFromDict:
    """initializationOptions and YAML shapes."""

    def test_defaults(self):
        settings = Settings.from_dict(None)
        assert settings.refresh_interval == timedelta(hours=24)
        assert settings.negative_cache is True
        assert all(settings.is_enabled(registry_type) for registry_type in RegistryType)

    def test_camel_case_options(self):
        settings = Settings.from_dict({
            "cache": {"refreshInterval": 3600000, "negativeCache": False},
            "registries": {"npm": {"enabled": False}, "crates": {"baseUrl": "http://mirror.local/crates"}},
            "fetchTimeout": 10,
        })

        assert settings.refresh_interval == timedelta(hours=1)
        assert settings.negative_cache is False
        assert not settings.is_enabled(RegistryType.NPM)
        assert settings.is_enabled(RegistryType.CRATES)
        assert settings.base_url(RegistryType.CRATES) == "http://mirror.local/crates"
        assert settings.fetch_timeout == 10.0

    def test_snake_case_and_boolean_switch(self):
        settings = Settings.from_dict({"refresh_interval": "6h", "registries": {"github_actions": False}})
        assert settings.refresh_interval == timedelta(hours=6)
        assert not settings.is_enabled(RegistryType.GITHUB_RELEASES)

    def test_overlay_does_not_mutate_base(self):
        base = Settings()
        Settings.from_dict({"registries": {"pypi": False}}, base=base)
        assert base.is_enabled(RegistryType.PYPI)

    def test_unknown_registry(self):
        with pytest.raises(ConfigError):
            Settings.from_dict({"registries": {"maven": False}})

    def test_wrong_types(self):
        with pytest.raises(ConfigError):
            Settings.from_dict({"cache": "fast"})
        with pytest.raises(ConfigError):
            Settings.from_dict({"registries": {"npm": {"enabled": "no"}}})

    def test_fetch_timeout_duration_string(self):
        assert Settings.from_dict({"fetchTimeout": "10s"}).fetch_timeout == 10.0

    @pytest.mark.parametrize("value", [[1], {"s": 1}, True, 0, "-5s"])
    def test_fetch_timeout_rejects_bad_values(self, value):
        with pytest.raises(ConfigError):
            Settings.from_dict({"fetchTimeout": value})

    def test_disabled_registries_get_no_fetcher(self):
        settings = Settings.from_dict({"registries": {"npm": False, "jsr": {"baseUrl": "http://jsr.local/"}}})
        registries = default_registries(HttpClient(), settings)

        assert RegistryType.NPM not in registries
        assert registries[RegistryType.JSR].base_url == "http://jsr.local"


class TestLoadSettings:
    """YAML config files."""

    def test_yaml_file(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text(
            "cache:\n"
            "  refresh_interval: 2h\n"
            f"  path: {tmp_path / 'cache.db'}\n"
            "registries:\n"
            "  go-proxy:\n"
            "    enabled: false\n"
            "log:\n"
            "  level: debug\n",
            encoding="utf-8",
        )

        settings = load_settings(config)

        assert settings.refresh_interval == timedelta(hours=2)
        assert settings.db_path == tmp_path / "cache.db"
        assert not settings.is_enabled(RegistryType.GO_PROXY)
        assert settings.log_level == "debug"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "nope.yaml")

    def test_missing_default_file_gives_defaults(self, monkeypatch, tmp_path):
        monkeypatch.delenv("VERSION_LSP_CONFIG", raising=False)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert load_settings().refresh_interval == timedelta(hours=24)

    def test_env_path(self, monkeypatch, tmp_path):
        config = tmp_path / "env.yaml"
        config.write_text("refreshInterval: 1000\n", encoding="utf-8")
        monkeypatch.setenv("VERSION_LSP_CONFIG", str(config))
        assert load_settings().refresh_interval == timedelta(seconds=1)

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("cache: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings(config)

    def test_non_mapping(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("- npm\n- crates\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_settings(config)
