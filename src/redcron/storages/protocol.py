from typing import Protocol


class Store(Protocol):
    """
    The shared key-value store every process of a deployment talks to.

    All writes must be atomic on the store side; TTLs are in seconds.
    """

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        """Create `key` unless it exists. Return True if this call created it."""
        ...

    async def set(self, key: str, value: str, ttl: float, only_if_exists: bool = False) -> bool:
        """Write `key` with a new TTL. With `only_if_exists`, return False instead of creating it."""
        ...

    async def delete(self, key: str) -> int:
        """Delete `key` and return the number of removed records."""
        ...

    async def expire_if_equals(self, key: str, value: str, ttl: float) -> bool:
        """Reset the TTL of `key` only while it still holds `value`. Return True if it did."""
        ...

    async def delete_if_equals(self, key: str, value: str) -> int:
        """Delete `key` only while it still holds `value`. Return the number of removed records."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
