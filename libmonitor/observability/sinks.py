"""Event sinks: where monitor records end up.

Every sink shares one call contract, ``write(record)``, so a Monitor does not
care whether records are printed, discarded or captured for tests. The
structlog method names are aliases of ``write``, which lets a sink act
directly as the wrapped logger of a structlog bound logger.
"""

import json
import sys
import threading
from abc import ABC, abstractmethod
from typing import Any, TextIO

Record = dict[str, Any]


class EventSink(ABC):
    """Abstract destination for structured monitor records."""

    @abstractmethod
    def write(self, record: Record) -> None:
        """Write one record."""

    def derive(self) -> "EventSink":
        """Return the sink a child monitor should write to.

        Most sinks are shared by the whole monitor hierarchy.
        """
        return self

    def close(self) -> None:
        """Release any resources owned by the sink."""

    def msg(self, record: Record) -> None:
        self.write(record)

    log = debug = info = warn = warning = msg
    fatal = failure = err = error = critical = exception = msg


class StreamEventSink(EventSink):
    """Writes one JSON line per record to a text stream (stdout by default)."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def write(self, record: Record) -> None:
        line = json.dumps(record, default=repr)
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()

    def close(self) -> None:
        with self._lock:
            self._stream.flush()


class NullEventSink(EventSink):
    """Discards every record; used when a monitor is disabled."""

    def write(self, record: Record) -> None:
        pass


class MemoryEventSink(EventSink):
    """Captures records in memory, for tests and mock mode.

    Records go through a JSON round trip so tests see exactly what a stream
    sink would have printed.
    """

    def __init__(self) -> None:
        self.events: list[Record] = []

    def write(self, record: Record) -> None:
        self.events.append(json.loads(json.dumps(record, default=repr)))

    def derive(self) -> "MemoryEventSink":
        # Each monitor in a mocked hierarchy captures its own records
        return MemoryEventSink()

    def clear(self) -> None:
        self.events.clear()
