"""Tests for the single-flight build scheduler."""

from __future__ import annotations

import asyncio

import pytest

from probegen.build import BuildFailedError, BuildScheduler


class GatedCycle:
    """Build cycle that blocks until released, counting invocations."""

    def __init__(self) -> None:
        self.calls = 0
        self.release = asyncio.Event()
        self.started = asyncio.Event()

    async def __call__(self) -> None:
        self.calls += 1
        self.started.set()
        await self.release.wait()


@pytest.mark.parametrize("extra_requests", [2, 3, 10])
def test_requests_during_build_coalesce_into_one_rebuild(extra_requests: int) -> None:
    async def scenario() -> int:
        cycle = GatedCycle()
        scheduler = BuildScheduler(cycle)

        assert scheduler.request() is True
        await cycle.started.wait()
        for _ in range(extra_requests):
            assert scheduler.request() is False
        assert scheduler.state.label == "building+queued"

        cycle.release.set()
        await scheduler.wait_idle()
        assert scheduler.state.label == "idle"
        return cycle.calls

    assert asyncio.run(scenario()) == 2


def test_single_request_runs_once() -> None:
    async def scenario() -> BuildScheduler:
        calls = []

        async def cycle() -> None:
            calls.append(1)

        scheduler = BuildScheduler(cycle)
        scheduler.request()
        await scheduler.wait_idle()
        assert calls == [1]
        return scheduler

    scheduler = asyncio.run(scenario())
    assert scheduler.state.building is False
    assert scheduler.cycles_run == 1


def test_trailing_build_sees_state_at_its_start() -> None:
    async def scenario() -> list[int]:
        state = {"value": 0}
        seen: list[int] = []
        gate = asyncio.Event()

        async def cycle() -> None:
            seen.append(state["value"])
            if len(seen) == 1:
                await gate.wait()

        scheduler = BuildScheduler(cycle)
        scheduler.request()
        await asyncio.sleep(0)
        for value in (1, 2, 3):
            state["value"] = value
            scheduler.request()
        gate.set()
        await scheduler.wait_idle()
        return seen

    assert asyncio.run(scenario()) == [0, 3]


def test_idle_scheduler_accepts_new_request_after_completion() -> None:
    async def scenario() -> int:
        calls = []

        async def cycle() -> None:
            calls.append(1)

        scheduler = BuildScheduler(cycle)
        scheduler.request()
        await scheduler.wait_idle()
        assert scheduler.request() is True
        await scheduler.wait_idle()
        return len(calls)

    assert asyncio.run(scenario()) == 2


def test_failure_propagates_and_resets_state() -> None:
    async def scenario() -> BuildScheduler:
        async def cycle() -> None:
            raise BuildFailedError(["make"], 3)

        scheduler = BuildScheduler(cycle)
        scheduler.request()
        scheduler.request()
        with pytest.raises(BuildFailedError) as excinfo:
            await scheduler.wait_idle()
        assert excinfo.value.returncode == 3
        return scheduler

    scheduler = asyncio.run(scenario())
    assert scheduler.state.building is False
    assert scheduler.state.rebuild_queued is False
    assert scheduler.cycles_run == 1
