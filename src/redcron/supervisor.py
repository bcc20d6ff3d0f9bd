import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

from redcron.claims import ClaimManager
from redcron.domain.job import JobContext, JobSpec
from redcron.lease import LeaseRenewer
from redcron.scope import CancelScope

log = logging.getLogger(__name__)

JobBody = Callable[[JobContext], Union[Awaitable[Any], Any]]


async def invoke_body(body: JobBody, ctx: JobContext) -> None:
    """
    Await coroutine functions, run plain callables in a worker thread.

    A plain callable may still hand back an awaitable (a lambda wrapping a
    coroutine function, for instance); it is awaited on the event loop.
    """
    if inspect.iscoroutinefunction(body) or inspect.iscoroutinefunction(getattr(body, "__call__", None)):
        await body(ctx)
        return
    result = await asyncio.to_thread(body, ctx)
    if inspect.isawaitable(result):
        await result


class ExecutionSupervisor:
    def __init__(self, claims: ClaimManager, renewer: LeaseRenewer):
        self.claims: ClaimManager = claims
        self.renewer: LeaseRenewer = renewer

    async def execute(self, job: JobSpec, tick: int, body: JobBody, parent: CancelScope) -> None:
        """
        Run `body` once for a claimed tick while its lease is renewed.

        Errors raised by the body are not handled here; they propagate once
        the lease has been given up. A lease found lost while the body ran
        is not released, since the record may already belong to another process.

        Args:
            job (JobSpec): The job whose tick was claimed.
            tick (int): The claimed tick.
            body (JobBody): The job body.
            parent (CancelScope): Scope the execution scope is derived from.
        """
        scope = parent.child()
        renewal = asyncio.create_task(self.renewer.run(job, tick, scope), name=f"redcron-renew:{job.name}")
        ctx = JobContext(job=job, tick=tick, scope=scope, clock=self.renewer.clock)
        log.info("Running job '%s' for tick %d", job.name, tick)
        try:
            await invoke_body(body, ctx)
        finally:
            scope.cancel()
            if await renewal:
                await self.claims.release(job, tick)
            else:
                log.warning("Job '%s' lost its claim on tick %d, leaving the store as is", job.name, tick)
            log.info("Job '%s' finished tick %d", job.name, tick)
