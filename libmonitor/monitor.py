"""Hierarchical metrics and error reporting monitor.

A Monitor emits structured records (counts, measures, error reports) whose
type is namespaced by the monitor's subject. The root monitor is created once
at startup; ``prefix`` derives lightweight children that extend the subject
and metadata and share the root's sink.

Usage:
    monitor = Monitor(project_name="queue-service", process_name="server")
    api = monitor.prefix("api", {"region": "us-east-1"})

    api.count("requests")
    result = await api.timer("fetch", fetch_task())
    app.add_middleware(api.http_middleware("v1"))
"""

import asyncio
import functools
import inspect
import time
import traceback
from collections.abc import Awaitable, Callable, Coroutine, Iterable, Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, TypeVar

from structlog.typing import FilteringBoundLogger

from libmonitor.config import Settings, get_settings
from libmonitor.config.models import MonitorConfig
from libmonitor.exceptions import ConfigError, InvalidMetricValue, MonitorError
from libmonitor.faults import (
    FaultHandlers,
    FaultRegistry,
    default_registry,
    terminate_process,
)
from libmonitor.middleware import TimingMiddleware
from libmonitor.observability.logging import get_logger
from libmonitor.observability.records import FIELDS_KEY, build_event_logger
from libmonitor.observability.sinks import (
    EventSink,
    MemoryEventSink,
    NullEventSink,
    StreamEventSink,
)
from libmonitor.resources import ResourceSampler
from libmonitor.timekeeper import TimeKeeper

logger = get_logger(__name__)

T = TypeVar("T")

ReportLevel = Literal["debug", "info", "warning", "error", "critical", "fatal"]

# report_error level -> structlog method; anything else is reported as error
_LEVEL_METHODS = {
    "debug": "debug",
    "info": "info",
    "warning": "warning",
    "error": "error",
    "critical": "critical",
    "fatal": "critical",
}


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _check_number(key: str, val: Any) -> None:
    if isinstance(val, bool) or not isinstance(val, int | float):
        raise InvalidMetricValue(key, val)


def _describe_error(err: BaseException) -> str:
    message = str(err)
    return f"{type(err).__name__}: {message}" if message else type(err).__name__


class Monitor:
    """A namespaced metrics and error reporting handle.

    Args:
        config: Validated options; mutually exclusive with ``**options``
        sink: Destination for records (defaults by mode: stdout, discard
            when disabled, in-memory capture when mocked)
        fault_registry: Process hook registry (defaults to the shared one)
        exit_process: Called with an exit code wherever the monitor would
            terminate the process
        **options: MonitorConfig fields, validated into a config

    Raises:
        ConfigError: If the options are missing, invalid or deprecated
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        *,
        sink: EventSink | None = None,
        fault_registry: FaultRegistry | None = None,
        exit_process: Callable[[int], Any] | None = None,
        _parent: "Monitor | None" = None,
        **options: Any,
    ) -> None:
        if config is None:
            config = MonitorConfig.from_options(**options)
        elif options:
            raise ConfigError(
                f"Pass either a config or keyword options, not both: {sorted(options)}"
            )

        self.config = config
        self.metadata: Mapping[str, Any] = MappingProxyType(dict(config.metadata))
        self._sink = sink if sink is not None else self._default_sink(config)
        self._owns_sink = _parent is None or self._sink is not _parent._sink
        self._sampler: ResourceSampler | None = None
        self._terminated = False
        self._root: Monitor = _parent._root if _parent is not None else self

        if _parent is not None:
            self._faults = _parent._faults
            self._exit_process = _parent._exit_process
            self.git_version = _parent.git_version
        else:
            self._faults = fault_registry or default_registry
            self._exit_process = exit_process or terminate_process
            self.git_version = config.git_version or self._read_git_version(config)

        self._log = build_event_logger(
            self._sink,
            project_name=config.project_name,
            subject=config.subject,
            level=config.log_level,
            metadata=dict(self.metadata),
        )

        if _parent is None and config.patch_global:
            self._faults.register(
                self,
                FaultHandlers(
                    on_uncaught=self._on_uncaught,
                    on_unhandled_rejection=self._on_unhandled_rejection,
                ),
            )

        if _parent is None and config.process_name:
            self.resources(config.process_name, config.resource_interval)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "Monitor":
        """Build a root monitor from deployment settings.

        Args:
            settings: Settings to use (defaults to ``get_settings()``)
            **overrides: Options and collaborators that take precedence
        """
        settings = settings or get_settings()
        return cls(**{**settings.monitor_options(), **overrides})

    @staticmethod
    def _default_sink(config: MonitorConfig) -> EventSink:
        if config.mocked:
            return MemoryEventSink()
        if not config.enable:
            return NullEventSink()
        return StreamEventSink()

    @staticmethod
    def _read_git_version(config: MonitorConfig) -> str | None:
        root = config.app_root or Path.cwd()
        try:
            return (root / config.git_version_file).read_text().strip() or None
        except OSError:
            return None

    def __repr__(self) -> str:
        return f"<Monitor {self.config.project_name}:{self.subject}>"

    @property
    def project_name(self) -> str:
        return self.config.project_name

    @property
    def subject(self) -> str:
        return self.config.subject

    @property
    def enabled(self) -> bool:
        return self.config.enable

    @property
    def logger(self) -> FilteringBoundLogger:
        """The bound logger behind this monitor, for ad-hoc records."""
        return self._log

    @property
    def events(self) -> list[dict[str, Any]]:
        """Records captured by this monitor (mock mode only)."""
        if not isinstance(self._sink, MemoryEventSink):
            raise MonitorError("Captured events are only available in mock mode")
        return self._sink.events

    # Metrics

    def count(self, key: str, val: float = 1) -> None:
        """Emit a count record ``<subject>.<key>``."""
        self._emit_metric("count", key, val)

    def measure(self, key: str, val: float) -> None:
        """Emit a measurement record ``<subject>.<key>``."""
        self._emit_metric("measure", key, val)

    def _emit(self, method: str, key: str, fields: Mapping[str, Any]) -> None:
        self._attach_running_loop()
        getattr(self._log, method)(key, **{FIELDS_KEY: dict(fields)})

    def _emit_metric(self, op: str, key: str, val: Any) -> None:
        try:
            _check_number(key, val)
        except InvalidMetricValue:
            self._emit("error", f"{op}.invalid", {"key": key, "val": val})
            return
        self._emit("info", key, {"val": val})

    # Timing

    def timer(self, key: str, work: Callable[[], T] | Awaitable[T]) -> Any:
        """Time a callable or an awaitable and measure it under ``key``.

        A callable is invoked immediately. If it raises, the elapsed time is
        measured before the exception propagates. If the callable returns an
        awaitable, or ``work`` is one, the measurement is taken when it
        settles, before the caller sees the outcome.

        Returns:
            Whatever ``work`` returns; for awaitables, an awaitable resolving
            to the same result (a future when an event loop is running)
        """
        start = time.perf_counter()
        if callable(work) and not inspect.isawaitable(work):
            try:
                work = work()
            except BaseException:
                self.measure(key, _elapsed_ms(start))
                raise

        if inspect.isawaitable(work):
            return self._time_awaitable(key, start, work)

        self.measure(key, _elapsed_ms(start))
        return work

    def _time_awaitable(self, key: str, start: float, awaitable: Awaitable[T]) -> Awaitable[T]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._await_and_measure(key, start, awaitable)

        self._attach_running_loop()
        future = asyncio.ensure_future(awaitable, loop=loop)
        if future.done():
            # Awaiting a finished future does not yield to callbacks
            self.measure(key, _elapsed_ms(start))
        else:
            # Registered before any awaiter, so it fires first
            future.add_done_callback(lambda _: self.measure(key, _elapsed_ms(start)))
        return future

    async def _await_and_measure(self, key: str, start: float, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        finally:
            self.measure(key, _elapsed_ms(start))

    def time_keeper(self, name: str) -> TimeKeeper:
        """Start a TimeKeeper that measures under ``name``."""
        return TimeKeeper(self, name)

    def _wrap_timed(
        self, fn: Callable[..., Any], record: Callable[[float, bool], None]
    ) -> Callable[..., Any]:
        """Wrap ``fn`` so ``record(start, failed)`` runs once per call.

        Calls that return an awaitable are recorded when it settles, whether
        or not ``fn`` is a coroutine function.
        """

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except BaseException:
                record(start, True)
                raise
            if inspect.isawaitable(result):
                return self._settle(start, result, record)
            record(start, False)
            return result

        if not inspect.iscoroutinefunction(fn):
            return wrapper

        @functools.wraps(fn)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            return await wrapper(*args, **kwargs)

        return async_wrapper

    async def _settle(
        self,
        start: float,
        awaitable: Awaitable[T],
        record: Callable[[float, bool], None],
    ) -> T:
        self._attach_running_loop()
        failed = True
        try:
            result = await awaitable
            failed = False
            return result
        finally:
            record(start, failed)

    def timed_handler(self, name: str, handler: Callable[..., Any]) -> Callable[..., Any]:
        """Wrap a message handler so every call is timed and counted.

        Each call emits a measure and a count for ``<name>.success`` or
        ``<name>.error``, and again for ``<name>.all``. Exceptions from the
        handler are re-raised after recording. Handlers that return an
        awaitable are recorded when it settles.
        """

        def record(start: float, failed: bool) -> None:
            elapsed = _elapsed_ms(start)
            for stat in ("error" if failed else "success", "all"):
                key = f"{name}.{stat}"
                self.measure(key, elapsed)
                self.count(key)

        return self._wrap_timed(handler, record)

    def timed_call(
        self,
        name: str,
        fn: Callable[..., Any],
        scopes: Iterable[str] = ("global",),
    ) -> Callable[..., Any]:
        """Wrap a client call so each invocation reports duration and count.

        For every scope, emits ``<scope>.<name>.duration`` and
        ``<scope>.<name>.count`` whether the call succeeds or fails. Use a
        prefixed monitor to namespace by service, and extra scopes for
        e.g. per-region breakdowns:

            s3 = monitor.prefix("s3")
            get_object = s3.timed_call("getObject", client.get_object, ("global", "us-east-1"))
        """
        scopes = tuple(scopes)

        def record(start: float, failed: bool) -> None:
            elapsed = _elapsed_ms(start)
            for scope in scopes:
                self.measure(f"{scope}.{name}.duration", elapsed)
                self.count(f"{scope}.{name}.count")

        return self._wrap_timed(fn, record)

    def http_middleware(self, name: str) -> Callable[..., TimingMiddleware]:
        """Return an ASGI middleware factory timing requests under ``name``.

        Usage:
            app.add_middleware(monitor.http_middleware("api"))
        """
        return functools.partial(TimingMiddleware, monitor=self, name=name)

    async def one_shot(self, name: str, fn: Callable[[], Any] | None = None) -> int:
        """Run a one-shot job, then terminate the process.

        Times ``fn`` under ``<name>.duration`` and counts ``<name>.done`` on
        success; any exception is reported. The process then exits with 0 on
        success and 1 on failure. Only in mock mode without ``allow_exit``
        does this return instead, with the exit status.
        """
        self._attach_running_loop()

        exit_status = 0
        try:
            if not isinstance(name, str):
                raise ConfigError("one_shot name must be a string", option="name")
            if not callable(fn):
                raise ConfigError("one_shot fn must be callable", option="fn")

            result = self.timer(f"{name}.duration", fn)
            if inspect.isawaitable(result):
                await result
            self.count(f"{name}.done")
        except Exception as err:
            self.report_error(err)
            exit_status = 1

        if self.config.allow_exit:
            self._exit_process(exit_status)
        return exit_status

    # Resources

    def resources(self, process_name: str, interval: float = 10) -> Callable[[], None]:
        """Start sampling CPU and memory every ``interval`` seconds.

        Any sampler already running on this monitor is stopped first.

        Returns:
            A function that stops this sampler; safe to call repeatedly

        Raises:
            ConfigError: If ``interval`` is not positive
        """
        sampler = ResourceSampler(self, process_name, interval)
        self.stop_resource_monitoring()
        self._sampler = sampler
        sampler.start()

        def stop() -> None:
            sampler.stop()
            if self._sampler is sampler:
                self._sampler = None

        return stop

    def stop_resource_monitoring(self) -> None:
        if self._sampler is not None:
            self._sampler.stop()
            self._sampler = None

    # Derivation

    def prefix(self, segment: str, metadata: Mapping[str, Any] | None = None) -> "Monitor":
        """Derive a child monitor.

        The child's subject is ``<subject>.<segment>`` and its metadata is
        this monitor's metadata updated with ``metadata``. It shares the
        sink and configuration, but never registers global fault handlers
        or a resource sampler.
        """
        config = self.config.model_copy(
            update={
                "subject": f"{self.subject}.{segment}",
                "metadata": {**self.metadata, **(metadata or {})},
                "patch_global": False,
                "process_name": None,
            }
        )
        return Monitor(config, sink=self._sink.derive(), _parent=self)

    # Errors

    def report_error(
        self,
        err: BaseException | str,
        level: ReportLevel = "error",
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        """Emit an error record ``<subject>.error``.

        Args:
            err: The exception, or a description when there is none
            level: Record level; "fatal" is emitted at critical severity and
                unknown levels at error severity
            extra: Additional fields for the record
        """
        fields = dict(extra or {})
        if isinstance(err, BaseException):
            fields["error"] = _describe_error(err)
            fields["stack"] = "".join(
                traceback.format_exception(type(err), err, err.__traceback__)
            )
        else:
            fields["error"] = str(err)
        if self.git_version:
            fields["gitVersion"] = self.git_version

        self._emit(_LEVEL_METHODS.get(level, "error"), "error", fields)

    def attach_loop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Route unhandled faults of an event loop to the root monitor.

        Rarely needed: the running loop is attached automatically whenever
        this monitor hierarchy is used inside it.
        """
        if self._faults.is_registered(self._root):
            self._faults.attach_loop(loop or asyncio.get_running_loop())

    def _attach_running_loop(self) -> None:
        if not self._faults.is_registered(self._root):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._faults.attach_loop(loop)

    def run(self, main: Coroutine[Any, Any, T], *, debug: bool | None = None) -> T:
        """Run ``main`` like ``asyncio.run``, with the new loop attached.

        Unhandled faults of the loop are routed to this monitor even if the
        coroutine never calls into it.
        """
        with asyncio.Runner(debug=debug) as runner:
            self.attach_loop(runner.get_loop())
            return runner.run(main)

    def _on_uncaught(self, err: BaseException) -> None:
        self.report_error(err, "fatal")
        self._exit_process(1)

    def _on_unhandled_rejection(self, context: dict[str, Any]) -> None:
        message = context.get("message", "Unhandled exception in event loop")
        exc = context.get("exception")
        reason: BaseException | str = exc if exc is not None else message

        if not self.config.bail_on_unhandled_rejection:
            self.report_error(
                reason, "error", {"sort": "unhandledRejection", "context": message}
            )
            return

        self.report_error(reason, "fatal", {"context": message})
        self._exit_process(1)

    # Lifecycle

    def terminate(self) -> None:
        """Release the sampler, the fault hooks and, if owned, the sink.

        Safe to call more than once. Terminating a child never affects its
        parent or siblings.
        """
        if self._terminated:
            return
        self._terminated = True

        self.stop_resource_monitoring()
        self._faults.unregister(self)
        if self._owns_sink:
            self._sink.close()
        logger.debug("monitor_terminated", subject=self.subject)
