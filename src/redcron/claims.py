import asyncio
import logging
import math
from typing import Any, Awaitable, Optional

from redcron.clock import Clock, seconds_until_next_tick
from redcron.config import EngineConfig, ErrorEvent, ReleasePolicy
from redcron.domain.claim import ClaimRecord, owner_key, tick_key
from redcron.domain.job import JobSpec
from redcron.errors import OwnershipLostError, StoreError, StoreTimeoutError
from redcron.storages.protocol import Store

log = logging.getLogger(__name__)


async def _guarded(call: Awaitable[Any]) -> Any:
    try:
        return await call
    except (asyncio.TimeoutError, TimeoutError) as e:
        # raised by the store itself, not by the operation timeout
        raise StoreError(f"store raised {e!r}") from e


class ClaimManager:
    """
    Claims, renews and releases ticks of a job in the shared store.

    A claim is two records. The per-tick key is written once per tick and
    outlives the period, so a tick can be won only once across all processes.
    The current-owner key is short-lived and renewed while the job runs, so a
    crashed owner stops blocking the job after at most `lease_ttl` seconds.

    Renewal and release compare the stored value with this process's own
    ClaimRecord, so a process that lost its lease never touches the claim
    of the next owner.

    None of the methods raise on store failures: they report an ErrorEvent
    and answer False.
    """

    def __init__(self, store: Store, config: EngineConfig, clock: Clock, owner_id: str):
        self.store: Store = store
        self.config: EngineConfig = config
        self.clock: Clock = clock
        self.owner_id: str = owner_id

    def owner_key(self, job: JobSpec) -> str:
        return owner_key(self.config.key_prefix, job.name)

    def tick_key(self, job: JobSpec, tick: int) -> str:
        return tick_key(self.config.key_prefix, job.name, tick)

    def _value(self, job: JobSpec, tick: int) -> str:
        return ClaimRecord.for_tick(job, tick, self.owner_id).model_dump_json()

    def _report(self, error: Exception, job: JobSpec, operation: str, tick: int) -> None:
        self.config.report_error(ErrorEvent(
            error=error,
            job_name=job.name,
            operation=operation,
            tick=tick,
            tags=job.tags,
            sequence_number=job.sequence_number,
        ))

    async def _call(self, operation: str, job: JobSpec, tick: int, call: Awaitable[Any]) -> Optional[Any]:
        """
        Run one store call under the operation timeout. Returns None on failure.
        """
        try:
            return await asyncio.wait_for(_guarded(call), timeout=self.config.op_timeout)
        except asyncio.TimeoutError:
            self._report(
                StoreTimeoutError(f"store did not answer within {self.config.op_timeout}s"),
                job, operation, tick,
            )
        except Exception as e:
            self._report(e, job, operation, tick)
        return None

    async def try_claim(self, job: JobSpec, tick: int) -> bool:
        value = self._value(job, tick)

        created = await self._call(
            "claim", job, tick,
            self.store.set_if_absent(self.tick_key(job, tick), value, self.config.lease_ttl + job.repeat_sec),
        )
        if not created:
            log.debug("Tick %d of job '%s' already taken", tick, job.name)
            return False

        # the tick key is left to expire so this tick cannot be claimed again
        created = await self._call(
            "claim", job, tick,
            self.store.set_if_absent(self.owner_key(job), value, self.config.lease_ttl),
        )
        if not created:
            log.debug("Job '%s' is still owned by another process, giving up tick %d", job.name, tick)
            return False

        log.debug("Claimed tick %d of job '%s'", tick, job.name)
        return True

    async def renew(self, job: JobSpec, tick: int) -> bool:
        renewed = await self._call(
            "renew", job, tick,
            self.store.expire_if_equals(self.owner_key(job), self._value(job, tick), self.config.lease_ttl),
        )
        if renewed is None:
            return False
        if not renewed:
            self._report(
                OwnershipLostError(f"claim of job '{job.name}' for tick {tick} is gone or held by another process"),
                job, "renew", tick,
            )
            return False
        return True

    async def release(self, job: JobSpec, tick: int) -> bool:
        """
        Give up the current-owner record once the job body has returned.

        Only a record still holding this process's claim is touched. With
        ReleasePolicy.EXPIRE_AT_NEXT_TICK it is kept until the next tick is
        due, so nobody can claim the job again in between.
        """
        if self.config.release_policy == ReleasePolicy.EXPIRE_AT_NEXT_TICK:
            remaining = seconds_until_next_tick(tick, job.repeat_sec, self.clock.time())
            # round down: the record must be gone when the next tick is sampled
            remaining = math.floor(remaining * 1000) / 1000
            if remaining > 0:
                shortened = await self._call(
                    "release", job, tick,
                    self.store.expire_if_equals(self.owner_key(job), self._value(job, tick), remaining),
                )
                return bool(shortened)

        deleted = await self._call(
            "release", job, tick, self.store.delete_if_equals(self.owner_key(job), self._value(job, tick))
        )
        return deleted is not None and deleted >= 1
