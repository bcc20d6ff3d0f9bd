import logging

from redcron.claims import ClaimManager
from redcron.clock import Clock
from redcron.domain.job import JobSpec
from redcron.scope import CancelScope

log = logging.getLogger(__name__)


class LeaseRenewer:
    """
    Keeps the current-owner record of a running job alive.
    """

    def __init__(self, claims: ClaimManager, clock: Clock, interval: float):
        self.claims: ClaimManager = claims
        self.clock: Clock = clock
        self.interval: float = interval

    async def run(self, job: JobSpec, tick: int, scope: CancelScope) -> bool:
        """
        Renew every `interval` seconds until `scope` is cancelled.

        A failed renewal cancels `scope` so that the job body stops.

        Returns:
            bool: False if ownership was lost, True if the scope ended normally.
        """
        while await scope.sleep(self.interval, self.clock):
            if not await self.claims.renew(job, tick):
                log.warning("Lost the lease of job '%s' (tick %d), cancelling it", job.name, tick)
                scope.cancel()
                return False
        return True
