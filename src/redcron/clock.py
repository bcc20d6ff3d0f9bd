import asyncio
import math
import random
import time
from typing import TYPE_CHECKING, AsyncIterator, Optional, Protocol

if TYPE_CHECKING:
    from redcron.scope import CancelScope


class Clock(Protocol):
    def time(self) -> float:
        """Current wall-clock time in epoch seconds."""
        ...

    async def sleep(self, delay: float) -> None:
        """Suspend for `delay` seconds of this clock's time."""
        ...


class SystemClock:
    def time(self) -> float:
        return time.time()

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)


def is_due(t: int, repeat_sec: int, offset_sec: int) -> bool:
    """
    Whether the epoch second `t` is a trigger instant of a job.

    Python's modulo is floored, so the result is consistent for negative
    offsets and for `t < offset_sec`.
    """
    return (t - offset_sec) % repeat_sec == 0


def next_due(after: int, repeat_sec: int, offset_sec: int) -> int:
    """
    The first trigger instant at or after `after`.
    """
    return after + (offset_sec - after) % repeat_sec


def seconds_until_next_tick(tick: int, repeat_sec: int, now: float) -> float:
    return tick + repeat_sec - now


async def sample_clock(
    scope: "CancelScope",
    clock: Clock,
    base: float,
    jitter: float,
    rng: Optional[random.Random] = None,
) -> AsyncIterator[int]:
    """
    Yield whole epoch seconds, roughly a few times per second.

    Each sample is taken after `base` plus a uniform random fraction of
    `jitter` seconds. `base + jitter` must stay below one second or
    seconds get skipped.

    The generator ends as soon as `scope` is cancelled.
    """
    uniform = rng.uniform if rng is not None else random.uniform
    while True:
        if not await scope.sleep(base + uniform(0, jitter), clock):
            return
        yield math.floor(clock.time())
