from .protocol import Store
from .in_memory import InMemoryStore
from .redis import RedisStore

__all__ = ["Store", "InMemoryStore", "RedisStore"]
