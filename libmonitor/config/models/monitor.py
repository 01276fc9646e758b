"""Monitor construction options."""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from libmonitor.exceptions import ConfigError

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

# Renamed or dropped options, mapped to the message they are rejected with
DEPRECATED_OPTIONS: dict[str, str] = {
    "project": "`project` is now `project_name`",
    "process": "`process` is now `process_name`",
    "credentials": "Credentials are no longer required for libmonitor",
    "statsum_token": "Credentials are no longer required for libmonitor",
    "sentry_dsn": "Credentials are no longer required for libmonitor",
}


class MockOptions(BaseModel):
    """Mock mode settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    allow_exit: bool = Field(
        default=False,
        description="Let one_shot terminate the process even in mock mode",
    )


class MonitorConfig(BaseModel):
    """Typed construction options for a Monitor.

    Instances are frozen: a Monitor's configuration never changes after it is
    built, and children get their own copy through ``model_copy``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    project_name: str = Field(description="Project name, used as the Logger of every record")
    patch_global: bool = Field(
        default=True,
        description="Register process-wide uncaught fault handlers",
    )
    bail_on_unhandled_rejection: bool = Field(
        default=False,
        description="Exit the process on unhandled asynchronous faults",
    )
    resource_interval: float = Field(
        default=10,
        gt=0,
        description="Resource sampling interval in seconds",
    )
    mock: bool | MockOptions = Field(
        default=False,
        description="Capture records in memory instead of writing them",
    )
    enable: bool = Field(default=True, description="Discard all records when false")
    git_version: str | None = Field(
        default=None,
        description="Explicit git version for correlating errors",
    )
    git_version_file: str = Field(
        default=".git-version",
        description="File holding the git version, relative to app_root",
    )
    app_root: Path | None = Field(
        default=None,
        description="Application root directory (defaults to the working directory)",
    )
    process_name: str | None = Field(
        default=None,
        description="Start resource sampling under this process name",
    )
    log_level: LogLevel = Field(default="INFO", description="Minimum record level")
    subject: str = Field(default="root", description="Namespace prefix for every record")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Fields merged into every record",
    )

    @field_validator("project_name")
    @classmethod
    def project_name_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("project_name must not be empty")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @property
    def allow_exit(self) -> bool:
        """Whether one_shot may terminate the process."""
        if isinstance(self.mock, MockOptions):
            return self.mock.allow_exit
        return not self.mock

    @property
    def mocked(self) -> bool:
        return isinstance(self.mock, MockOptions) or bool(self.mock)

    @classmethod
    def from_options(cls, **options: Any) -> "MonitorConfig":
        """Validate raw keyword options into a config.

        Raises:
            ConfigError: On a missing project name, a deprecated option, an
                unknown option or an invalid value
        """
        for name, message in DEPRECATED_OPTIONS.items():
            if name in options:
                raise ConfigError(message, option=name)

        if not options.get("project_name"):
            raise ConfigError("Must provide a project name", option="project_name")

        try:
            return cls(**options)
        except ValidationError as e:
            first = e.errors()[0]
            option = ".".join(str(part) for part in first["loc"]) or None
            raise ConfigError(f"Invalid monitor option {option}: {first['msg']}", option=option) from e
