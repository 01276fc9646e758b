"""Unit tests for Settings and get_settings."""

from pathlib import Path

import pytest

from libmonitor import Monitor
from libmonitor.config import get_settings, reload_settings
from libmonitor.config.settings import Settings


@pytest.fixture
def config_env(
    test_config_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> Path:
    """Point the loader at an empty temporary config directory."""
    monkeypatch.setenv("LIBMONITOR_CONFIG_DIR", str(test_config_dir))
    monkeypatch.setenv("LIBMONITOR_ENV", "nonexistent")
    return test_config_dir


class TestSettings:
    """Tests for the Settings model."""

    def test_default_values(self) -> None:
        """Settings has sensible defaults."""
        settings = Settings()
        assert settings.patch_global is True
        assert settings.resource_interval == 10
        assert settings.log_level == "INFO"
        assert settings.logging.format == "json"

    def test_monitor_options_skip_unset_values(self) -> None:
        """Unset optional values are left to the monitor defaults."""
        options = Settings(project_name="svc").monitor_options()
        assert options["project_name"] == "svc"
        assert "process_name" not in options
        assert "git_version" not in options
        assert "logging" not in options


class TestGetSettings:
    """Tests for get_settings function."""

    def test_reads_toml(self, config_env: Path) -> None:
        """get_settings reads the [monitor] table."""
        (config_env / "default.toml").write_text(
            "[monitor]\nproject_name = 'from-toml'\nresource_interval = 30"
        )

        settings = get_settings()
        assert isinstance(settings, Settings)
        assert settings.project_name == "from-toml"
        assert settings.resource_interval == 30

    def test_settings_cached(self, config_env: Path) -> None:
        """get_settings returns cached instance."""
        assert get_settings() is get_settings()

    def test_reload_settings_clears_cache(self, config_env: Path) -> None:
        """reload_settings returns fresh instance."""
        default_toml = config_env / "default.toml"
        default_toml.write_text("[monitor]\nproject_name = 'original'")
        assert get_settings().project_name == "original"

        default_toml.write_text("[monitor]\nproject_name = 'updated'")
        assert reload_settings().project_name == "updated"


class TestEnvironmentVariableOverrides:
    """Tests for environment variable configuration overrides."""

    def test_top_level_override(
        self, config_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Top-level values can be overridden with env vars."""
        (config_env / "default.toml").write_text("[monitor]\nenable = true")
        monkeypatch.setenv("LIBMONITOR_ENABLE", "false")

        assert get_settings().enable is False

    def test_nested_override(
        self, config_env: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Nested values can be overridden with double underscore."""
        (config_env / "default.toml").write_text("[monitor.logging]\nformat = 'json'")
        monkeypatch.setenv("LIBMONITOR_LOGGING__FORMAT", "console")

        assert get_settings().logging.format == "console"


class TestMonitorFromSettings:
    """Tests for Monitor.from_settings."""

    def test_builds_root_monitor(
        self, config_env: Path, fault_registry, tmp_path: Path
    ) -> None:
        """Settings provide defaults; overrides take precedence."""
        (config_env / "default.toml").write_text(
            "[monitor]\nproject_name = 'from-toml'\nlog_level = 'WARNING'"
        )

        monitor = Monitor.from_settings(
            mock=True,
            app_root=tmp_path,
            log_level="DEBUG",
            fault_registry=fault_registry,
        )
        assert monitor.project_name == "from-toml"
        assert monitor.config.log_level == "DEBUG"
        monitor.terminate()

    def test_explicit_settings(self, fault_registry, tmp_path: Path) -> None:
        """An explicit Settings instance is used as is."""
        settings = Settings(project_name="explicit", patch_global=False)
        monitor = Monitor.from_settings(
            settings, mock=True, app_root=tmp_path, fault_registry=fault_registry
        )
        assert monitor.project_name == "explicit"
        assert fault_registry.active is None
        monitor.terminate()
