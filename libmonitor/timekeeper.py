"""Scoped timing helper."""

import time
from types import TracebackType
from typing import TYPE_CHECKING

from libmonitor.exceptions import MonitorError

if TYPE_CHECKING:
    from libmonitor.monitor import Monitor


class TimeKeeper:
    """Measures the time since its creation under one key.

    Either call ``measure()`` when the timed work is done, or use the keeper
    as a context manager:

        with monitor.time_keeper("rebuild"):
            rebuild_index()
    """

    def __init__(self, monitor: "Monitor", name: str) -> None:
        self.monitor = monitor
        self.name = name
        self.start = time.perf_counter()
        self.submitted = False

    def measure(self, force: bool = False) -> float:
        """Emit the elapsed milliseconds.

        Args:
            force: Submit even if a measurement was already submitted

        Returns:
            The elapsed time in milliseconds

        Raises:
            MonitorError: If a measurement was already submitted and force is false
        """
        if self.submitted and not force:
            raise MonitorError(f"Cannot submit measurement twice for {self.name}")
        self.submitted = True
        elapsed = (time.perf_counter() - self.start) * 1000
        self.monitor.measure(self.name, elapsed)
        return elapsed

    def __enter__(self) -> "TimeKeeper":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if not self.submitted:
            self.measure()
