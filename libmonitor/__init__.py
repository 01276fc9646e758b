"""libmonitor: a process-wide metrics and error reporting facade.

Monitors time operations, count events, report errors and sample process
resources, emitting everything as structured log lines for downstream
systems to mine.
"""

from libmonitor.config.models import MockOptions, MonitorConfig
from libmonitor.exceptions import ConfigError, InvalidMetricValue, MonitorError
from libmonitor.faults import FaultHandlers, FaultRegistry
from libmonitor.middleware import TimingMiddleware
from libmonitor.monitor import Monitor
from libmonitor.observability.sinks import (
    EventSink,
    MemoryEventSink,
    NullEventSink,
    StreamEventSink,
)
from libmonitor.resources import ResourceSampler
from libmonitor.timekeeper import TimeKeeper

__all__ = [
    "ConfigError",
    "EventSink",
    "FaultHandlers",
    "FaultRegistry",
    "InvalidMetricValue",
    "MemoryEventSink",
    "MockOptions",
    "Monitor",
    "MonitorConfig",
    "MonitorError",
    "NullEventSink",
    "ResourceSampler",
    "StreamEventSink",
    "TimeKeeper",
    "TimingMiddleware",
]
