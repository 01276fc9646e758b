"""Configuration model exports.

    from libmonitor.config.models import MonitorConfig, MockOptions
"""

from libmonitor.config.models.monitor import (
    DEPRECATED_OPTIONS,
    LogLevel,
    MockOptions,
    MonitorConfig,
)
from libmonitor.config.models.observability import LogFormat, LoggingConfig

__all__ = [
    "DEPRECATED_OPTIONS",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "MockOptions",
    "MonitorConfig",
]
