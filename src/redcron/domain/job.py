from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from redcron.clock import Clock
from redcron.scope import CancelScope


class JobSpec(BaseModel):
    """
    A named periodic job. Immutable once registered.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Job name, unique per engine and shared by all processes running it")
    repeat_sec: int = Field(..., gt=0, description="Period of the job in seconds")
    offset_sec: int = Field(0, description="Offset of the trigger instants, taken modulo repeat_sec")
    tags: Dict[str, str] = Field(default_factory=dict, description="Opaque labels used to attribute errors")
    sequence_number: Optional[int] = Field(None, description="Opaque number used to attribute errors")


@dataclass(frozen=True)
class JobContext:
    """
    What a job body receives for one claimed tick.
    """
    job: JobSpec
    tick: int
    scope: CancelScope
    clock: Clock

    @property
    def cancelled(self) -> bool:
        return self.scope.cancelled

    @property
    def scheduled_at(self) -> datetime:
        return datetime.fromtimestamp(self.tick, tz=timezone.utc)

    async def wait_cancelled(self) -> None:
        await self.scope.wait()

    async def sleep(self, delay: float) -> bool:
        """
        Sleep unless the execution is cancelled first. Returns False when cancelled.
        """
        return await self.scope.sleep(delay, self.clock)
