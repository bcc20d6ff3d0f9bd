import asyncio
import heapq
import itertools
from typing import List, Tuple

import pytest

from redcron.config import EngineConfig, ErrorEvent
from redcron.storages.in_memory import InMemoryStore

# divisible by 60, so minutely ticks fall on START + k * 60
START = 1_699_999_980.0


class ManualClock:
    """
    Virtual clock: time only moves when a test calls `advance`.
    """

    def __init__(self, start: float = START):
        self._now: float = start
        self._sleepers: List[Tuple[float, int, asyncio.Future]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        return self._now

    async def sleep(self, delay: float) -> None:
        if delay <= 0:
            await asyncio.sleep(0)
            return
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + delay, next(self._seq), future))
        await future

    async def settle(self) -> None:
        for _ in range(100):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        """
        Move time forward, waking every sleeper in deadline order and letting
        the event loop run after each wake-up.
        """
        target = self._now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self._now = max(self._now, deadline)
            future.set_result(None)
            await self.settle()
        self._now = target
        await self.settle()


@pytest.fixture(scope="function")
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture(scope="function")
def store(clock: ManualClock) -> InMemoryStore:
    return InMemoryStore(clock)


@pytest.fixture(scope="function")
def errors() -> List[ErrorEvent]:
    return []


@pytest.fixture(scope="function")
def config(errors: List[ErrorEvent]) -> EngineConfig:
    return EngineConfig(on_error=errors.append)
