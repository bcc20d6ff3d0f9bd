import asyncio
import logging
import math
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from redcron.claims import ClaimManager
from redcron.clock import Clock, SystemClock, is_due, next_due, sample_clock
from redcron.config import EngineConfig
from redcron.domain.claim import generate_owner_id
from redcron.domain.job import JobSpec
from redcron.errors import EngineStoppedError
from redcron.lease import LeaseRenewer
from redcron.scope import CancelScope
from redcron.storages.protocol import Store
from redcron.supervisor import ExecutionSupervisor, JobBody

log = logging.getLogger(__name__)


class EngineState(str, Enum):
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class JobHandle:
    """
    A registered job and the task running its claim loop.
    """

    def __init__(self, job: JobSpec, clock: Clock):
        self.job: JobSpec = job
        self.clock: Clock = clock
        self.task: Optional[asyncio.Task] = None
        self.executions: int = 0
        self.running: bool = False

    @property
    def name(self) -> str:
        return self.job.name

    def next_due(self, now: Optional[float] = None) -> int:
        """
        The first tick at or after `now`, which defaults to the engine clock's time.
        """
        if now is None:
            now = self.clock.time()
        return next_due(math.ceil(now), self.job.repeat_sec, self.job.offset_sec)

    def __repr__(self) -> str:
        return f"JobHandle(name={self.name!r}, executions={self.executions}, running={self.running})"


class RedCron:
    """
    Runs periodic jobs so that, among all processes sharing `store`, exactly
    one of them executes each tick.

    Jobs start as soon as they are registered. `stop()` drains them: no new
    tick is claimed, running executions are waited for and cancelled only
    once the stop timeout has elapsed. A stopped engine cannot be restarted.
    """

    def __init__(self, store: Store, config: Optional[EngineConfig] = None, clock: Optional[Clock] = None):
        self.store: Store = store
        self.config: EngineConfig = config or EngineConfig()
        self.clock: Clock = clock or SystemClock()
        self.owner_id: str = self.config.owner_id or generate_owner_id()
        self.claims: ClaimManager = ClaimManager(self.store, self.config, self.clock, self.owner_id)
        self.supervisor: ExecutionSupervisor = ExecutionSupervisor(
            self.claims, LeaseRenewer(self.claims, self.clock, self.config.renew_interval)
        )
        self._state: EngineState = EngineState.RUNNING
        # cancelled at the stop deadline, reaches running executions
        self._scope: CancelScope = CancelScope()
        # cancelled as soon as stop() is called, ends the claim loops
        self._claiming: CancelScope = self._scope.child()
        self._stopped: asyncio.Event = asyncio.Event()
        self._jobs: Dict[str, JobHandle] = {}

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def jobs(self) -> Dict[str, JobHandle]:
        return dict(self._jobs)

    async def __aenter__(self) -> "RedCron":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def register(
        self,
        name: str,
        repeat_sec: int,
        offset_sec: int = 0,
        body: Optional[JobBody] = None,
        *,
        tags: Optional[Dict[str, str]] = None,
        sequence_number: Optional[int] = None,
    ) -> JobHandle:
        """
        Register a job and start its claim loop. Must be called from a running event loop.

        Args:
            name (str): Job name, shared by every process running this job.
            repeat_sec (int): Period in seconds, greater than zero.
            offset_sec (int): The job is due whenever (t - offset_sec) % repeat_sec == 0.
            body (JobBody): Called with a JobContext for every tick this process wins.
            tags (Optional[Dict[str, str]]): Attached to reported errors.
            sequence_number (Optional[int]): Attached to reported errors.

        Returns:
            JobHandle: The registered job.

        Raises:
            ValueError: If the name or period is invalid, or the name is already registered.
            TypeError: If body is not callable.
            EngineStoppedError: If stop() has been called.
        """
        if self._state != EngineState.RUNNING:
            raise EngineStoppedError(f"Cannot register job '{name}': engine is {self._state.value}")
        job = JobSpec(
            name=name,
            repeat_sec=repeat_sec,
            offset_sec=offset_sec,
            tags=tags or {},
            sequence_number=sequence_number,
        )
        if not callable(body):
            raise TypeError(f"Body of job '{name}' must be callable")
        if job.name in self._jobs:
            raise ValueError(f"Job '{job.name}' is already registered")

        handle = JobHandle(job, self.clock)
        handle.task = asyncio.create_task(self._run(handle, body), name=f"redcron:{job.name}")
        handle.task.add_done_callback(lambda t: self._handle_loop_completion(job.name, t))
        self._jobs[job.name] = handle
        log.info(
            "Registered job '%s' (every %ds, offset %ds, next tick at %d)",
            job.name, job.repeat_sec, job.offset_sec, handle.next_due(),
        )
        return handle

    def job(self, name: str, repeat_sec: int, offset_sec: int = 0, **kwargs: Any) -> Callable[[JobBody], JobBody]:
        """
        Decorator form of `register`.
        """
        def _wrap(body: JobBody) -> JobBody:
            self.register(name, repeat_sec, offset_sec, body, **kwargs)
            return body
        return _wrap

    async def _run(self, handle: JobHandle, body: JobBody) -> None:
        """
        Claim loop of one job: runs until stop() is called.
        """
        job = handle.job
        last_tick: Optional[int] = None
        samples = sample_clock(self._claiming, self.clock, self.config.sample_base, self.config.sample_jitter)
        async for tick in samples:
            if tick == last_tick or not is_due(tick, job.repeat_sec, job.offset_sec):
                continue
            last_tick = tick
            if not await self.claims.try_claim(job, tick):
                continue
            handle.executions += 1
            handle.running = True
            try:
                await self.supervisor.execute(job, tick, body, self._scope)
            finally:
                handle.running = False

    def _handle_loop_completion(self, name: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("Claim loop of job '%s' ended with an error", name, exc_info=error)

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop claiming new ticks and wait for running executions.

        Args:
            timeout (Optional[float]): Seconds to wait before running executions
                are cancelled. None waits for them indefinitely, 0 cancels them at once.
                Even after cancelling, stop() waits until every execution returned.
        """
        if self._state != EngineState.RUNNING:
            await self._stopped.wait()
            return

        self._state = EngineState.STOPPING
        log.info("Stopping, %d job(s) registered", len(self._jobs))
        self._claiming.cancel()

        tasks: List[asyncio.Task] = [h.task for h in self._jobs.values() if h.task is not None]
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                log.warning("Stop timeout elapsed, cancelling %d running job(s)", len(pending))
                self._scope.cancel()
                await asyncio.wait(pending)

        self._scope.cancel()
        self._state = EngineState.STOPPED
        self._stopped.set()
        log.info("Stopped")
