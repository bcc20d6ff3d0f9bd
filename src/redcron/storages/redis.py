import os
from typing import Any, Optional

import redis.asyncio as aioredis

from redcron.storages.protocol import Store


EXPIRE_IF_EQUALS = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("pexpire", KEYS[1], ARGV[2])
else
  return 0
end
"""

DELETE_IF_EQUALS = """
if redis.call("get", KEYS[1]) == ARGV[1] then
  return redis.call("del", KEYS[1])
else
  return 0
end
"""


def _to_millis(ttl: float) -> int:
    millis = int(ttl * 1000)
    if millis <= 0:
        raise ValueError(f"TTL must be at least one millisecond, got {ttl}")
    return millis


class RedisStore(Store):
    """
    Store backed by Redis: SET NX PX, SET [XX] PX and DEL, plus Lua scripts
    for the compare-and-expire / compare-and-delete operations.
    """

    def __init__(self, client: aioredis.Redis):
        self.client: aioredis.Redis = client

    @classmethod
    def from_url(cls, url: Optional[str] = None, **kwargs: Any) -> "RedisStore":
        if url is None or url == "":
            url = os.environ.get("REDIS_URL")
            if url is None:
                raise ValueError("Redis URL not provided and not found in environment variables.")
        return cls(aioredis.from_url(url, **kwargs))

    async def set_if_absent(self, key: str, value: str, ttl: float) -> bool:
        result = await self.client.set(key, value, nx=True, px=_to_millis(ttl))
        return bool(result)

    async def set(self, key: str, value: str, ttl: float, only_if_exists: bool = False) -> bool:
        result = await self.client.set(key, value, px=_to_millis(ttl), xx=only_if_exists)
        return bool(result)

    async def delete(self, key: str) -> int:
        return int(await self.client.delete(key))

    async def expire_if_equals(self, key: str, value: str, ttl: float) -> bool:
        result = await self.client.eval(EXPIRE_IF_EQUALS, 1, key, value, _to_millis(ttl))
        return bool(result)

    async def delete_if_equals(self, key: str, value: str) -> int:
        return int(await self.client.eval(DELETE_IF_EQUALS, 1, key, value))

    async def close(self) -> None:
        await self.client.aclose()
