import asyncio
from typing import Optional, Set

from redcron.clock import Clock


class CancelScope:
    """
    Cooperative cancellation tree.

    Cancelling a scope cancels all of its descendants. Nothing is interrupted
    forcibly: code running under a scope is expected to check `cancelled`, or to
    wait through `wait()` / `sleep()`, and return on its own.
    """

    def __init__(self, parent: Optional["CancelScope"] = None):
        self._event = asyncio.Event()
        self._children: Set["CancelScope"] = set()
        self._parent = parent
        if parent is not None:
            if parent.cancelled:
                self._event.set()
            else:
                parent._children.add(self)

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def child(self) -> "CancelScope":
        return CancelScope(self)

    def cancel(self) -> None:
        if self._event.is_set():
            return
        self._event.set()
        for child in list(self._children):
            child.cancel()
        self._children.clear()
        if self._parent is not None:
            self._parent._children.discard(self)

    async def wait(self) -> None:
        await self._event.wait()

    async def sleep(self, delay: float, clock: Clock) -> bool:
        """
        Sleep on the given clock unless the scope is cancelled first.

        Returns:
            bool: True if the full delay elapsed, False if the scope was cancelled.
        """
        if self.cancelled:
            return False
        sleeper = asyncio.ensure_future(clock.sleep(delay))
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            waiter.cancel()
        return not self.cancelled
