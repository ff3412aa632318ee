"""Tests for configuration file locations and resolution."""

import json
from pathlib import Path

import pytest

from config.config_store import ConfigError, ConfigResolver, ConfigStore
from config.scan_config import ScanConfig, SizeMode


class TestConfigStore:
    def test_env_overrides_directories(self, isolated_app_dirs):
        assert ConfigStore.config_dir() == isolated_app_dirs["config"]
        assert ConfigStore.data_dir() == isolated_app_dirs["data"]
        assert ConfigStore.config_path() == isolated_app_dirs["config"] / "config.json"
        assert ConfigStore.catalog_path() == isolated_app_dirs["data"] / "projects.sqlite"

    def test_xdg_fallback_on_linux(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PROJECT_BROWSER_CONFIG_DIR", raising=False)
        monkeypatch.setattr("config.config_store.sys.platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

        assert ConfigStore.config_dir() == tmp_path / "xdg" / "projectbrowser"

    def test_ignore_file_paths_only_existing_primary_first(self, isolated_app_dirs, monkeypatch, tmp_path):
        home = tmp_path / "home"
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
        assert ConfigStore.ignore_file_paths() == []

        legacy = home / ".config" / "project-browser" / "ignore"
        legacy.parent.mkdir(parents=True)
        legacy.write_text("scratch/\n")
        assert ConfigStore.ignore_file_paths() == [legacy]

        primary = isolated_app_dirs["config"] / "ignore"
        primary.parent.mkdir(parents=True, exist_ok=True)
        primary.write_text("tmp/\n")
        assert ConfigStore.ignore_file_paths() == [primary, legacy]


class TestConfigResolver:
    def _write(self, path: Path, payload) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    def test_missing_file_yields_defaults(self, tmp_path):
        resolver = ConfigResolver(tmp_path / "config.json")

        assert resolver.load() == ScanConfig()
        assert resolver.last_error is None

    def test_persisted_values_override_defaults(self, tmp_path):
        path = self._write(
            tmp_path / "config.json",
            {
                "roots": [str(tmp_path / "work")],
                "size_mode": "none",
                "concurrency": 2,
                "vcs": {"use_cli_fallback": True},
            },
        )

        config = ConfigResolver(path).load()
        assert config.roots == (tmp_path / "work",)
        assert config.size_mode is SizeMode.NONE
        assert config.concurrency == 2
        assert config.vcs_cli_fallback is True
        assert config.global_ignores == ScanConfig().global_ignores

    def test_malformed_file_falls_back_and_records_error(self, tmp_path):
        path = self._write(tmp_path / "config.json", "{not json")
        resolver = ConfigResolver(path)

        assert resolver.load() == ScanConfig()
        assert isinstance(resolver.last_error, ConfigError)
        assert resolver.last_error.path == path

    def test_invalid_value_falls_back(self, tmp_path):
        path = self._write(tmp_path / "config.json", {"concurrency": 0})
        resolver = ConfigResolver(path)

        assert resolver.load() == ScanConfig()
        assert "concurrency" in str(resolver.last_error)

    def test_strict_load_raises(self, tmp_path):
        path = self._write(tmp_path / "config.json", "[]")

        with pytest.raises(ConfigError):
            ConfigResolver(path).load(strict=True)

    def test_overrides_take_precedence_over_file(self, tmp_path):
        path = self._write(tmp_path / "config.json", {"concurrency": 2, "size_mode": "none"})

        config = ConfigResolver(path).effective({"concurrency": 5, "roots": None})
        assert config.concurrency == 5
        assert config.size_mode is SizeMode.NONE

    def test_overrides_apply_even_when_file_is_malformed(self, tmp_path):
        path = self._write(tmp_path / "config.json", "{broken")
        resolver = ConfigResolver(path)

        config = resolver.effective({"concurrency": 3})
        assert config.concurrency == 3
        assert resolver.last_error is not None

    @pytest.mark.parametrize("overrides", [{"concurrency": 0}, {"colour": "blue"}])
    def test_invalid_overrides_raise(self, tmp_path, overrides):
        with pytest.raises(ConfigError):
            ConfigResolver(tmp_path / "config.json").effective(overrides)

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        resolver = ConfigResolver(path)
        config = ScanConfig(roots=(tmp_path,), concurrency=4, enrichers=())

        assert resolver.save(config) == path
        assert json.loads(path.read_text())["vcs"] == {"use_cli_fallback": False}
        assert ConfigResolver(path).load() == config

    def test_default_path_comes_from_store(self, isolated_app_dirs):
        assert ConfigResolver().config_path == isolated_app_dirs["config"] / "config.json"
