import asyncio
from typing import List

import pytest

from redcron.claims import ClaimManager
from redcron.config import EngineConfig, ErrorEvent, ReleasePolicy
from redcron.domain.job import JobContext, JobSpec
from redcron.lease import LeaseRenewer
from redcron.scope import CancelScope
from redcron.storages.in_memory import InMemoryStore
from redcron.supervisor import ExecutionSupervisor

from conftest import START, ManualClock

TICK = int(START)


class RecordingStore(InMemoryStore):
    def __init__(self, clock: ManualClock, events: List[str]):
        super().__init__(clock)
        self.events = events

    async def delete_if_equals(self, key: str, value: str) -> int:
        self.events.append("release")
        return await super().delete_if_equals(key, value)


@pytest.fixture(scope="function")
def events() -> List[str]:
    return []


@pytest.fixture(scope="function")
def recording_store(clock: ManualClock, events: List[str]) -> RecordingStore:
    return RecordingStore(clock, events)


@pytest.fixture(scope="function")
def job() -> JobSpec:
    return JobSpec(name="report", repeat_sec=60)


@pytest.fixture(scope="function")
def claims(recording_store: RecordingStore, clock: ManualClock, errors: List[ErrorEvent]) -> ClaimManager:
    config = EngineConfig(on_error=errors.append, lease_ttl=5, renew_interval=1, release_policy=ReleasePolicy.DELETE)
    return ClaimManager(recording_store, config, clock, "owner-a")


@pytest.fixture(scope="function")
def supervisor(claims: ClaimManager, clock: ManualClock) -> ExecutionSupervisor:
    return ExecutionSupervisor(claims, LeaseRenewer(claims, clock, 1))


@pytest.mark.asyncio
async def test_body_runs_then_claim_is_released(
    supervisor: ExecutionSupervisor, claims: ClaimManager, recording_store: RecordingStore,
    job: JobSpec, events: List[str],
) -> None:
    contexts: List[JobContext] = []

    async def body(ctx: JobContext) -> None:
        contexts.append(ctx)
        events.append("body")

    assert await claims.try_claim(job, TICK)
    await supervisor.execute(job, TICK, body, CancelScope())

    assert events == ["body", "release"]
    assert contexts[0].tick == TICK
    assert contexts[0].job == job
    assert contexts[0].scheduled_at.timestamp() == TICK
    assert contexts[0].cancelled
    assert recording_store.get(claims.owner_key(job)) is None


@pytest.mark.asyncio
async def test_lost_lease_cancels_body_before_cleanup(
    supervisor: ExecutionSupervisor, claims: ClaimManager, recording_store: RecordingStore,
    clock: ManualClock, job: JobSpec, events: List[str],
) -> None:
    async def body(ctx: JobContext) -> None:
        await ctx.wait_cancelled()
        events.append("body-cancelled")

    assert await claims.try_claim(job, TICK)
    execution = asyncio.create_task(supervisor.execute(job, TICK, body, CancelScope()))
    await clock.advance(1)
    assert not execution.done()

    # evicted behind the engine's back
    recording_store._records.pop(claims.owner_key(job))
    await clock.advance(1)

    await asyncio.wait_for(execution, timeout=1)
    # the record may already belong to the next owner, so it is not released
    assert events == ["body-cancelled"]


@pytest.mark.asyncio
async def test_long_body_keeps_its_claim(
    supervisor: ExecutionSupervisor, claims: ClaimManager, recording_store: RecordingStore,
    clock: ManualClock, job: JobSpec, errors: List[ErrorEvent],
) -> None:
    finished: List[bool] = []

    async def body(ctx: JobContext) -> None:
        finished.append(await ctx.sleep(40))

    assert await claims.try_claim(job, TICK)
    execution = asyncio.create_task(supervisor.execute(job, TICK, body, CancelScope()))
    for _ in range(39):
        await clock.advance(1)
        assert recording_store.get(claims.owner_key(job)) is not None
    await clock.advance(1)

    await asyncio.wait_for(execution, timeout=1)
    assert finished == [True]
    assert errors == []


@pytest.mark.asyncio
async def test_parent_cancel_reaches_body(
    supervisor: ExecutionSupervisor, claims: ClaimManager, clock: ManualClock, job: JobSpec,
) -> None:
    observed: List[bool] = []

    async def body(ctx: JobContext) -> None:
        observed.append(await ctx.sleep(3600))

    parent = CancelScope()
    assert await claims.try_claim(job, TICK)
    execution = asyncio.create_task(supervisor.execute(job, TICK, body, parent))
    await clock.settle()
    parent.cancel()

    await asyncio.wait_for(execution, timeout=1)
    assert observed == [False]


@pytest.mark.asyncio
async def test_body_error_propagates_after_cleanup(
    supervisor: ExecutionSupervisor, claims: ClaimManager, job: JobSpec, events: List[str],
) -> None:
    async def body(ctx: JobContext) -> None:
        raise RuntimeError("boom")

    assert await claims.try_claim(job, TICK)
    with pytest.raises(RuntimeError, match="boom"):
        await supervisor.execute(job, TICK, body, CancelScope())
    assert events == ["release"]


@pytest.mark.asyncio
async def test_sync_body_runs_in_thread(
    supervisor: ExecutionSupervisor, claims: ClaimManager, job: JobSpec, events: List[str],
) -> None:
    def body(ctx: JobContext) -> None:
        events.append(f"sync {ctx.tick}")

    assert await claims.try_claim(job, TICK)
    await supervisor.execute(job, TICK, body, CancelScope())
    assert events == [f"sync {TICK}", "release"]


@pytest.mark.asyncio
async def test_plain_callable_returning_coroutine_is_awaited(
    supervisor: ExecutionSupervisor, claims: ClaimManager, job: JobSpec, events: List[str],
) -> None:
    async def work(ctx: JobContext) -> None:
        events.append(f"async {ctx.tick}")

    assert await claims.try_claim(job, TICK)
    await supervisor.execute(job, TICK, lambda ctx: work(ctx), CancelScope())
    assert events == [f"async {TICK}", "release"]
