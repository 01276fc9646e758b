"""Configuration loading for libmonitor.

Monitors are usually built from explicit keyword options. Services that
prefer deployment-level configuration can load defaults from TOML files with
environment variable overrides instead.

Usage:
    from libmonitor.config import get_settings

    settings = get_settings()
    monitor = Monitor(**settings.monitor_options())
"""

from functools import lru_cache

from libmonitor.config.loader import load_config
from libmonitor.config.models import MockOptions, MonitorConfig
from libmonitor.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance.

    The result is cached for the lifetime of the process.
    Call `get_settings.cache_clear()` to reload configuration.
    """
    config_dict = load_config()
    set_toml_config(config_dict)

    # pydantic-settings gives env vars priority over the TOML source
    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "reload_settings", "MockOptions", "MonitorConfig", "Settings"]
