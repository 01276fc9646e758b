"""Structlog pipeline that turns monitor calls into mozlog-style records.

A record looks like::

    {
        "Timestamp": 1700000000000000000,
        "Type": "root.api.requests",
        "Logger": "my-service",
        "Hostname": "host-1",
        "EnvVersion": "2.0",
        "Severity": 6,
        "Pid": 4242,
        "Fields": {"val": 1, "region": "us-east-1"},
    }

``Type`` is always the emitting monitor's subject followed by the key passed
to the logger, and ``Fields`` holds the bound metadata plus call fields.
Metadata and monitor-built fields travel under private keys, so names such
as ``event`` or ``level`` never collide with structlog's own keys.
"""

import logging
import os
import socket
import time
from typing import Any

import structlog
from structlog.typing import EventDict, FilteringBoundLogger, WrappedLogger

from libmonitor.observability.sinks import EventSink

ENV_VERSION = "2.0"

METADATA_KEY = "_metadata"
FIELDS_KEY = "_fields"

# Syslog severities, as used by mozlog
SEVERITY: dict[str, int] = {
    "debug": 7,
    "info": 6,
    "warning": 4,
    "error": 3,
    "critical": 2,
}


class MozlogFormatter:
    """Processor that wraps an event dict in the mozlog envelope."""

    def __init__(self, logger_name: str, subject: str) -> None:
        self._logger_name = logger_name
        self._subject = subject
        self._hostname = socket.gethostname()

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        level = event_dict.pop("level", "info")
        key = event_dict.pop("event", None)
        metadata = event_dict.pop(METADATA_KEY, {})
        fields = event_dict.pop(FIELDS_KEY, {})
        return {
            "Timestamp": time.time_ns(),
            "Type": f"{self._subject}.{key}" if key else self._subject,
            "Logger": self._logger_name,
            "Hostname": self._hostname,
            "EnvVersion": ENV_VERSION,
            "Severity": SEVERITY.get(level, SEVERITY["info"]),
            "Pid": os.getpid(),
            "Fields": {**metadata, **event_dict, **fields},
        }


def to_sink(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> tuple[tuple[EventDict], dict[str, Any]]:
    """Final processor: hand the finished record to the sink as one argument."""
    return (event_dict,), {}


def build_event_logger(
    sink: EventSink,
    *,
    project_name: str,
    subject: str,
    level: str,
    metadata: dict[str, Any],
) -> FilteringBoundLogger:
    """Build the bound logger a Monitor emits its records through.

    Args:
        sink: Destination for finished records
        project_name: Value of every record's Logger field
        subject: Prefix of every record's Type
        level: Minimum level name (records below it are dropped)
        metadata: Fields bound into every record

    Returns:
        A filtering bound logger with ``metadata`` already bound
    """
    logger = structlog.wrap_logger(
        sink,
        processors=[
            structlog.processors.add_log_level,
            MozlogFormatter(project_name, subject),
            to_sink,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        context_class=dict,
    )
    return logger.bind(**{METADATA_KEY: dict(metadata)})
