import asyncio
from datetime import datetime, timezone

import pytest

from deskboard.errors import ConfigError, UpstreamHttpError
from deskboard.refresh import RefreshController

FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _controller(fetch, **kwargs):
    kwargs.setdefault("interval", 3600)
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    return RefreshController("test", fetch, **kwargs)


def test_first_cycle_populates_state():
    async def fetch(params, force):
        return {"value": 42, "params": params, "force": force}

    async def scenario():
        controller = _controller(fetch, params={"city": "Paris"})
        await controller.start()
        state = controller.state
        await controller.stop()
        return state

    state = asyncio.run(scenario())
    assert state.data == {"value": 42, "params": {"city": "Paris"}, "force": False}
    assert state.loading is False
    assert state.error is None
    assert state.last_updated == FIXED_NOW


def test_failure_keeps_previous_data():
    results = iter(["first", UpstreamHttpError("Failed to fetch weather data. Please try again.", status=500)])

    async def fetch(params, force):
        item = next(results)
        if isinstance(item, Exception):
            raise item
        return item

    async def scenario():
        controller = _controller(fetch)
        await controller.start()
        await controller.refresh_now()
        state = controller.state
        await controller.stop()
        return state

    state = asyncio.run(scenario())
    assert state.data == "first"
    assert state.error == "Failed to fetch weather data. Please try again."
    assert state.loading is False


def test_config_error_message_is_shown_and_not_retried():
    calls = []

    async def fetch(params, force):
        calls.append(force)
        raise ConfigError("News API key not found")

    async def scenario():
        controller = _controller(fetch, interval=0.05)
        await controller.start()
        state = controller.state
        await controller.stop()
        return state

    state = asyncio.run(scenario())
    assert state.error == "News API key not found"
    assert state.loading is False
    assert state.data is None
    assert calls == [False]


def test_unexpected_exception_uses_failure_message():
    async def fetch(params, force):
        raise KeyError("main")

    async def scenario():
        controller = _controller(fetch, failure_message="Failed to load forecast data")
        await controller.start()
        return controller.state

    state = asyncio.run(scenario())
    assert state.error == "Failed to load forecast data"


def test_timer_runs_repeated_cycles():
    calls = []

    async def fetch(params, force):
        calls.append(force)
        return len(calls)

    async def scenario():
        controller = _controller(fetch, interval=0.01)
        controller.start()
        await asyncio.sleep(0.2)
        await controller.stop()

    asyncio.run(scenario())
    assert len(calls) >= 3
    assert not any(calls)


def test_timer_skips_while_cycle_in_flight():
    calls = []

    async def scenario():
        gate = asyncio.Event()

        async def fetch(params, force):
            calls.append(force)
            await gate.wait()
            return "done"

        controller = _controller(fetch, interval=0.01)
        controller.start()
        await asyncio.sleep(0.1)
        assert controller.busy
        gate.set()
        await controller.stop()

    asyncio.run(scenario())
    assert calls == [False]


def test_refresh_now_merges_params_and_forces():
    seen = []

    async def fetch(params, force):
        seen.append((dict(params), force))
        return params.get("city")

    async def scenario():
        controller = _controller(fetch, params={"city": "Bethesda", "units": "metric"})
        await controller.start()
        await controller.refresh_now({"city": "Oslo"})
        state = controller.state
        await controller.stop()
        return controller, state

    controller, state = asyncio.run(scenario())
    assert seen == [
        ({"city": "Bethesda", "units": "metric"}, False),
        ({"city": "Oslo", "units": "metric"}, True),
    ]
    assert state.data == "Oslo"
    assert controller.params["city"] == "Oslo"


def test_superseded_cycle_result_is_dropped():
    async def scenario():
        gate = asyncio.Event()
        calls = []

        async def fetch(params, force):
            calls.append(force)
            if len(calls) == 1:
                await gate.wait()
                return "old"
            return "new"

        controller = _controller(fetch)
        first = controller.start()
        await asyncio.sleep(0)
        await controller.refresh_now()
        gate.set()
        await first
        state = controller.state
        await controller.stop()
        return state

    state = asyncio.run(scenario())
    assert state.data == "new"
    assert state.loading is False


def test_stop_discards_in_flight_result():
    async def scenario():
        started = asyncio.Event()

        async def fetch(params, force):
            started.set()
            await asyncio.sleep(10)
            return "late"

        controller = _controller(fetch)
        controller.start()
        await started.wait()
        await controller.stop()
        assert not controller.busy
        assert not controller.running
        with pytest.raises(RuntimeError):
            controller.refresh_now()
        return controller.state

    state = asyncio.run(scenario())
    assert state.data is None


def test_context_manager_releases_timer():
    async def fetch(params, force):
        return "ok"

    async def scenario():
        controller = _controller(fetch)
        async with controller:
            assert controller.running
        return controller

    controller = asyncio.run(scenario())
    assert not controller.running


def test_start_twice_is_rejected():
    async def fetch(params, force):
        return None

    async def scenario():
        controller = _controller(fetch)
        controller.start()
        try:
            with pytest.raises(RuntimeError):
                controller.start()
        finally:
            await controller.stop()

    asyncio.run(scenario())
