"""Diagnostic logging configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

from libmonitor.config.models.monitor import LogLevel

LogFormat = Literal["json", "console"]


class LoggingConfig(BaseModel):
    """Configuration for the library's own diagnostic logging."""

    level: LogLevel = Field(default="INFO", description="Log level")
    format: LogFormat = Field(default="json", description="Output format")
