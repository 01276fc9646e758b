"""Observability: event sinks, the record pipeline, diagnostic logging.

Monitor records are built by a per-monitor structlog pipeline and written
to an EventSink; the library's own diagnostics use plain structlog loggers.
"""

from libmonitor.observability.records import build_event_logger
from libmonitor.observability.sinks import (
    EventSink,
    MemoryEventSink,
    NullEventSink,
    StreamEventSink,
)

__all__ = [
    "EventSink",
    "MemoryEventSink",
    "NullEventSink",
    "StreamEventSink",
    "build_event_logger",
]
