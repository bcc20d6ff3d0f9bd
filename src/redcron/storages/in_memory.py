from typing import Dict, Optional, Tuple

from redcron.clock import Clock, SystemClock
from redcron.storages.protocol import Store


class InMemoryStore(Store):
    """
    Store kept in the memory of one process, with TTLs measured on `clock`.
    WARNING: claims are only shared between engines of the same process.
    Useful for tests and single-process deployments.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock: Clock = clock or SystemClock()
        self._records: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[Tuple[str, float]]:
        record = self._records.get(key)
        if record is None:
            return None
        if record[1] <= self.clock.time():
            del self._records[key]
            return None
        return record

    def get(self, key: str) -> Optional[str]:
        record = self._live(key)
        return record[0] if record else None

    def ttl(self, key: str) -> Optional[float]:
        record = self._live(key)
        return record[1] - self.clock.time() if record else None

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        if self._live(key) is not None:
            return False
        self._records[key] = (value, self.clock.time() + ttl)
        return True

    async def set(self, key: str, value: str, ttl: float, only_if_exists: bool = False) -> bool:
        if only_if_exists and self._live(key) is None:
            return False
        self._records[key] = (value, self.clock.time() + ttl)
        return True

    async def delete(self, key: str) -> int:
        if self._live(key) is None:
            return 0
        del self._records[key]
        return 1

    async def expire_if_equals(self, key: str, value: str, ttl: float) -> bool:
        record = self._live(key)
        if record is None or record[0] != value:
            return False
        self._records[key] = (value, self.clock.time() + ttl)
        return True

    async def delete_if_equals(self, key: str, value: str) -> int:
        record = self._live(key)
        if record is None or record[0] != value:
            return 0
        del self._records[key]
        return 1

    async def close(self) -> None:
        self._records.clear()
