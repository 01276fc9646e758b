"""Tests for Monitor.timer and TimeKeeper."""

import asyncio
import time

import pytest

from libmonitor import Monitor, MonitorError, TimeKeeper


async def takes_100ms() -> int:
    await asyncio.sleep(0.1)
    return 13


def assert_single_measure(monitor: Monitor, key: str = "root.pfx") -> None:
    assert len(monitor.events) == 1
    assert monitor.events[0]["Type"] == key


class TestTimer:
    """Tests for timer."""

    def test_sync_function(self, monitor: Monitor) -> None:
        """A sync function's result is returned and measured once."""
        assert monitor.timer("pfx", lambda: 13) == 13
        assert_single_measure(monitor)

    def test_sync_function_that_fails(self, monitor: Monitor) -> None:
        """A sync failure is measured, then re-raised unchanged."""
        error = ValueError("uhoh")

        def fail() -> None:
            raise error

        with pytest.raises(ValueError) as exc_info:
            monitor.timer("pfx", fail)
        assert exc_info.value is error
        assert_single_measure(monitor)

    @pytest.mark.asyncio
    async def test_async_function(self, monitor: Monitor) -> None:
        """An async function is awaited and measured."""
        assert await monitor.timer("pfx", takes_100ms) == 13
        assert_single_measure(monitor)
        assert monitor.events[0]["Fields"]["val"] >= 90

    @pytest.mark.asyncio
    async def test_async_function_that_fails(self, monitor: Monitor) -> None:
        """An async failure is measured and surfaces to the awaiting caller."""

        async def fail() -> None:
            raise RuntimeError("uhoh")

        with pytest.raises(RuntimeError, match="uhoh"):
            await monitor.timer("pfx", fail)
        assert_single_measure(monitor)

    @pytest.mark.asyncio
    async def test_awaitable(self, monitor: Monitor) -> None:
        """An already-created coroutine is timed."""
        assert await monitor.timer("pfx", takes_100ms()) == 13
        assert_single_measure(monitor)
        assert monitor.events[0]["Fields"]["val"] >= 90

    @pytest.mark.asyncio
    async def test_failed_future(self, monitor: Monitor) -> None:
        """A failed future is measured and its exception re-raised."""
        future: asyncio.Future[int] = asyncio.get_running_loop().create_future()
        future.set_exception(RuntimeError("uhoh"))

        with pytest.raises(RuntimeError, match="uhoh"):
            await monitor.timer("pfx", future)
        assert_single_measure(monitor)

    @pytest.mark.asyncio
    async def test_measured_before_caller_resumes(self, monitor: Monitor) -> None:
        """The measurement exists by the time the caller sees the result."""
        result = await monitor.timer("pfx", takes_100ms)
        assert result == 13
        assert len(monitor.events) == 1

    @pytest.mark.asyncio
    async def test_measured_without_awaiting(self, monitor: Monitor) -> None:
        """The measurement happens even if the caller never awaits."""
        monitor.timer("pfx", takes_100ms())
        await asyncio.sleep(0.2)
        assert_single_measure(monitor)

    def test_awaitable_without_running_loop(self, monitor: Monitor) -> None:
        """Outside a loop an awaitable comes back as a timed coroutine."""
        timed = monitor.timer("pfx", takes_100ms)
        assert monitor.events == []
        assert asyncio.run(timed) == 13
        assert_single_measure(monitor)

    def test_prefixed_timer(self, monitor: Monitor) -> None:
        """Timers on a child are namespaced by the child's subject."""
        child = monitor.prefix("api")
        child.timer("pfx", lambda: None)
        assert monitor.events == []
        assert_single_measure(child, "root.api.pfx")


class TestTimeKeeper:
    """Tests for TimeKeeper."""

    def test_measure(self, monitor: Monitor) -> None:
        """measure emits the elapsed milliseconds."""
        keeper = monitor.time_keeper("tk")
        assert isinstance(keeper, TimeKeeper)
        time.sleep(0.01)
        elapsed = keeper.measure()

        assert elapsed >= 10
        assert monitor.events[0]["Type"] == "root.tk"
        assert monitor.events[0]["Fields"]["val"] == elapsed

    def test_measure_twice_raises(self, monitor: Monitor) -> None:
        """A second measurement requires force."""
        keeper = monitor.time_keeper("tk")
        keeper.measure()
        with pytest.raises(MonitorError):
            keeper.measure()
        keeper.measure(force=True)
        assert len(monitor.events) == 2

    def test_context_manager(self, monitor: Monitor) -> None:
        """Leaving the block measures once."""
        with monitor.time_keeper("tk") as keeper:
            pass
        assert keeper.submitted
        assert len(monitor.events) == 1

    def test_context_manager_on_error(self, monitor: Monitor) -> None:
        """The block is measured even when it raises."""
        with pytest.raises(KeyError):
            with monitor.time_keeper("tk"):
                raise KeyError("missing")
        assert len(monitor.events) == 1

    def test_context_manager_after_manual_measure(self, monitor: Monitor) -> None:
        """A manual measurement inside the block is not repeated."""
        with monitor.time_keeper("tk") as keeper:
            keeper.measure()
        assert len(monitor.events) == 1
