"""
Distributed Periodic Jobs

This package runs periodic jobs across many independent processes that share
one key-value store, so that each scheduled tick is executed by exactly one
of them.

Core Concepts:

Job:
    A named piece of work repeated every `repeat_sec` seconds, shifted by
    `offset_sec`. Every process running the same job registers it under the
    same name.

Tick:
    An epoch second at which a job is due: (t - offset_sec) % repeat_sec == 0.

Claim:
    Records written to the store with an atomic "set if absent". The process
    that creates them owns the tick; every other process skips it.

Lease:
    The TTL of the claim. It is renewed while the job body runs and given up
    when it returns. If renewal fails, the job body is asked to stop.

Relationships:
    - An engine (RedCron) owns many jobs, one claim loop each.
    - Each tick of a job is claimed by at most one process.
"""

from .config import EngineConfig, ErrorEvent, ReleasePolicy
from .domain import ClaimRecord, JobContext, JobSpec
from .engine import EngineState, JobHandle, RedCron
from .errors import EngineStoppedError, OwnershipLostError, RedCronError, StoreError, StoreTimeoutError
from .scope import CancelScope
from .storages import InMemoryStore, RedisStore, Store

__all__ = [
    "RedCron",
    "JobHandle",
    "EngineState",
    "EngineConfig",
    "ErrorEvent",
    "ReleasePolicy",
    "JobSpec",
    "JobContext",
    "ClaimRecord",
    "CancelScope",
    "Store",
    "InMemoryStore",
    "RedisStore",
    "RedCronError",
    "StoreError",
    "StoreTimeoutError",
    "OwnershipLostError",
    "EngineStoppedError",
]
