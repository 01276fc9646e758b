"""Root settings model for libmonitor configuration."""

from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from libmonitor.config.models import LoggingConfig, LogLevel

# Module-level variable to store TOML config for settings source
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that reads from TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return the TOML config values."""
        return _toml_config.copy()


class Settings(BaseSettings):
    """Deployment-level defaults for a root Monitor.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml, [monitor] table
    3. config/{LIBMONITOR_ENV}.toml, [monitor] table
    4. LIBMONITOR_* environment variables (runtime overrides)
    """

    model_config = SettingsConfigDict(
        env_prefix="LIBMONITOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    project_name: str | None = Field(default=None, description="Project name")
    patch_global: bool = Field(default=True, description="Register global fault handlers")
    bail_on_unhandled_rejection: bool = Field(
        default=False,
        description="Exit on unhandled asynchronous faults",
    )
    resource_interval: float = Field(default=10, gt=0, description="Sampling interval (s)")
    enable: bool = Field(default=True, description="Emit records")
    git_version: str | None = Field(default=None, description="Explicit git version")
    git_version_file: str = Field(default=".git-version", description="Git version file")
    app_root: Path | None = Field(default=None, description="Application root directory")
    process_name: str | None = Field(default=None, description="Resource sampling name")
    log_level: LogLevel = Field(default="INFO", description="Minimum record level")

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Diagnostic logging settings",
    )

    def monitor_options(self) -> dict[str, Any]:
        """Return the settings as Monitor keyword options.

        Unset optional values are left out so MonitorConfig defaults apply.
        """
        options = self.model_dump(exclude={"logging"})
        return {key: value for key, value in options.items() if value is not None}

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML config.

        Priority order (highest to lowest):
        1. init_settings (constructor arguments)
        2. env_settings (LIBMONITOR_* environment variables)
        3. toml_settings (config/*.toml files)
        4. (defaults from model)
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )
