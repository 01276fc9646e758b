"""ASGI middleware that times HTTP requests through a Monitor."""

import time
from typing import TYPE_CHECKING

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from libmonitor.observability.logging import get_logger

if TYPE_CHECKING:
    from libmonitor.monitor import Monitor

logger = get_logger(__name__)


def classify_status(status_code: int | None) -> str:
    """Map a response status to success, client-error or server-error.

    A request that ended without ever starting a response is a server error.
    """
    if status_code is None or status_code >= 500:
        return "server-error"
    if status_code >= 400:
        return "client-error"
    return "success"


class TimingMiddleware:
    """Reports response time and outcome of every HTTP request.

    For each request, with ``cls`` the status classification:

    - ``<name>.<cls>`` and ``<name>.all``: one measure and one count each
    - ``all.<cls>``: one measure and one count shared by every instance,
      giving a service-wide error rate

    A request completes either when the last body chunk is sent or when the
    wrapped app returns or raises (client disconnects surface this way). The
    report is sent once, on whichever happens first. Errors while reporting
    are logged and never reach the request pipeline.

    Usage:
        app.add_middleware(monitor.http_middleware("api"))
    """

    def __init__(self, app: ASGIApp, monitor: "Monitor", name: str) -> None:
        self.app = app
        self.monitor = monitor
        self.name = name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start = time.perf_counter()
        status_code: int | None = None
        reported = False

        def report() -> None:
            nonlocal reported
            if reported:
                return
            reported = True
            try:
                self._report(status_code, (time.perf_counter() - start) * 1000)
            except Exception:
                logger.exception("response_timing_failed", name=self.name)

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                report()

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            report()

    def _report(self, status_code: int | None, elapsed: float) -> None:
        outcome = classify_status(status_code)
        for stat in (outcome, "all"):
            key = f"{self.name}.{stat}"
            self.monitor.measure(key, elapsed)
            self.monitor.count(key)
        self.monitor.measure(f"all.{outcome}", elapsed)
        self.monitor.count(f"all.{outcome}")
