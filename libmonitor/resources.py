"""Periodic process resource sampling."""

import threading
from typing import TYPE_CHECKING, Any

import psutil

from libmonitor.exceptions import ConfigError
from libmonitor.observability.logging import get_logger

if TYPE_CHECKING:
    from libmonitor.monitor import Monitor

logger = get_logger(__name__)

MICROSECONDS = 1_000_000


class ResourceSampler:
    """Emits CPU and memory gauges for the current process at a fixed interval.

    Each tick reports, under ``process.<process_name>``:

    - ``cpu``: user + system CPU time since the previous tick (microseconds)
    - ``cpu.user`` / ``cpu.system``: the two components of ``cpu``
    - ``mem``: resident set size (bytes)

    The first tick reports CPU time since process start. Sampling runs on a
    daemon thread that waits on an Event, so ``stop()`` takes effect
    immediately and can be called any number of times.
    """

    def __init__(
        self,
        monitor: "Monitor",
        process_name: str,
        interval: float = 10,
        process: psutil.Process | None = None,
    ) -> None:
        if not interval > 0:
            raise ConfigError(
                f"Resource sampling interval must be positive, got {interval!r}",
                option="interval",
            )
        self.monitor = monitor
        self.process_name = process_name
        self.interval = interval
        self._process = process or psutil.Process()
        self._last_cpu: Any = None
        self._last_memory: Any = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()

    def start(self) -> None:
        """Start the sampling thread."""
        if self._thread is not None:
            logger.warning("resource_sampler_already_running", process_name=self.process_name)
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"ResourceSampler-{self.process_name}",
            daemon=True,
        )
        self._thread.start()
        logger.debug(
            "resource_sampler_started",
            process_name=self.process_name,
            interval=self.interval,
        )

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the sampling thread; idempotent."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is None:
            return
        if thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("resource_sampler_stopped", process_name=self.process_name)

    def sample(self) -> dict[str, float]:
        """Take one sample and emit the four gauges.

        Returns:
            Emitted values keyed by metric name suffix
        """
        cpu = self._process.cpu_times()
        if self._last_cpu is None:
            user = cpu.user
            system = cpu.system
        else:
            user = cpu.user - self._last_cpu.user
            system = cpu.system - self._last_cpu.system
        self._last_cpu = cpu
        self._last_memory = self._process.memory_info()

        values = {
            "cpu": (user + system) * MICROSECONDS,
            "cpu.user": user * MICROSECONDS,
            "cpu.system": system * MICROSECONDS,
            "mem": self._last_memory.rss,
        }
        for suffix, value in values.items():
            self.monitor.measure(f"process.{self.process_name}.{suffix}", value)
        return values

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.sample()
            except Exception:
                logger.exception("resource_sample_failed", process_name=self.process_name)
