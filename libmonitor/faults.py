"""Process-wide uncaught fault hooks.

Python has three places where a fault can escape unobserved: the main
thread (``sys.excepthook``), other threads (``threading.excepthook``) and an
asyncio event loop (its exception handler, which receives "exception was
never retrieved" reports). The FaultRegistry owns all three hooks and routes
faults to the most recently registered monitor.

Registrations are keyed by the registering object's identity, so a monitor
can remove exactly what it added. The original hooks are restored once the
last owner unregisters.
"""

import asyncio
import os
import sys
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Any

from libmonitor.observability.logging import get_logger

logger = get_logger(__name__)


def terminate_process(code: int) -> None:
    """Flush the standard streams and terminate the process immediately."""
    for stream in (sys.stdout, sys.stderr):
        try:
            stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(code)


@dataclass(frozen=True)
class FaultHandlers:
    """Callbacks a monitor provides for process-wide faults."""

    on_uncaught: Callable[[BaseException], None]
    """Called with an exception that escaped a thread."""

    on_unhandled_rejection: Callable[[dict[str, Any]], None]
    """Called with the asyncio exception handler context."""


class FaultRegistry:
    """Registry of process-wide fault handlers."""

    def __init__(self) -> None:
        self._owners: dict[int, FaultHandlers] = {}
        self._lock = threading.Lock()
        self._installed = False
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_excepthook: Callable[..., Any] | None = None
        self._loops: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Any] = (
            weakref.WeakKeyDictionary()
        )

    @property
    def active(self) -> FaultHandlers | None:
        """Handlers of the most recently registered owner, if any."""
        with self._lock:
            if not self._owners:
                return None
            return next(reversed(self._owners.values()))

    def is_registered(self, owner: object) -> bool:
        return id(owner) in self._owners

    def register(self, owner: object, handlers: FaultHandlers) -> None:
        """Bind the process hooks to ``owner``'s handlers.

        Registering the same owner again replaces its handlers and makes it
        the active owner; it never stacks a duplicate.
        """
        with self._lock:
            self._owners.pop(id(owner), None)
            self._owners[id(owner)] = handlers
            if not self._installed:
                self._install()

        try:
            self.attach_loop(asyncio.get_running_loop())
        except RuntimeError:
            # No running loop; attach_loop can be called once one exists
            pass

        logger.debug("fault_handlers_registered", owners=len(self._owners))

    def unregister(self, owner: object) -> bool:
        """Remove ``owner``'s handlers.

        Returns:
            True if the owner was registered
        """
        with self._lock:
            if self._owners.pop(id(owner), None) is None:
                return False
            if not self._owners:
                self._uninstall()

        logger.debug("fault_handlers_unregistered", owners=len(self._owners))
        return True

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route unhandled asynchronous faults of ``loop`` to the active owner."""
        if loop in self._loops:
            return
        with self._lock:
            if not self._installed or loop in self._loops:
                return
            self._loops[loop] = loop.get_exception_handler()
            loop.set_exception_handler(self._handle_loop_exception)

    def _install(self) -> None:
        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        sys.excepthook = self._handle_exception
        threading.excepthook = self._handle_thread_exception
        self._installed = True

    def _uninstall(self) -> None:
        # Hooks replaced by someone else since we installed ours stay put
        if sys.excepthook == self._handle_exception:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if threading.excepthook == self._handle_thread_exception:
            threading.excepthook = (
                self._previous_threading_excepthook or threading.__excepthook__
            )
        for loop, previous in list(self._loops.items()):
            if not loop.is_closed() and loop.get_exception_handler() == self._handle_loop_exception:
                loop.set_exception_handler(previous)
        self._loops.clear()
        self._previous_excepthook = None
        self._previous_threading_excepthook = None
        self._installed = False

    def _handle_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        handlers = self.active
        if handlers is None or issubclass(exc_type, KeyboardInterrupt):
            (self._previous_excepthook or sys.__excepthook__)(exc_type, exc, tb)
            return
        handlers.on_uncaught(exc)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        handlers = self.active
        if handlers is None or args.exc_value is None or issubclass(args.exc_type, SystemExit):
            (self._previous_threading_excepthook or threading.__excepthook__)(args)
            return
        handlers.on_uncaught(args.exc_value)

    def _handle_loop_exception(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        handlers = self.active
        if handlers is None:
            loop.default_exception_handler(context)
            return
        handlers.on_unhandled_rejection(context)


default_registry = FaultRegistry()
