"""Single-flight build scheduling with one coalesced trailing rebuild."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..logging import get_logger


@dataclass
class BuildState:
    """Idle, Building, or Building with a rebuild queued."""

    building: bool = False
    rebuild_queued: bool = False

    @property
    def label(self) -> str:
        if not self.building:
            return "idle"
        return "building+queued" if self.rebuild_queued else "building"


class BuildScheduler:
    """Runs ``cycle`` at most once at a time.

    Requests that arrive while a cycle runs set ``rebuild_queued``; however many
    arrive, exactly one more cycle follows the current one. Each cycle is
    expected to rescan on its own, so the trailing run sees the latest state.
    Must be driven from a single event loop.
    """

    def __init__(self, cycle: Callable[[], Awaitable[None]]) -> None:
        self._cycle = cycle
        self.state = BuildState()
        self._task: Optional[asyncio.Task[None]] = None
        self.cycles_run = 0
        self.logger = get_logger("scheduler")

    def request(self) -> bool:
        """Ask for a build; returns True when a new cycle was started."""
        if self.state.building:
            if not self.state.rebuild_queued:
                self.logger.debug("Build in progress; queueing one rebuild")
            self.state.rebuild_queued = True
            return False
        self.state.building = True
        self._task = asyncio.ensure_future(self._run())
        return True

    @property
    def task(self) -> Optional[asyncio.Task[None]]:
        return self._task

    async def wait_idle(self) -> None:
        """Wait for the current cycle and any trailing rebuild; re-raises failures."""
        if self._task is not None:
            await self._task

    async def _run(self) -> None:
        try:
            while True:
                self.cycles_run += 1
                await self._cycle()
                if not self.state.rebuild_queued:
                    break
                self.state.rebuild_queued = False
                self.logger.info("Running coalesced rebuild")
        finally:
            self.state.building = False
            self.state.rebuild_queued = False


__all__ = ["BuildScheduler", "BuildState"]
