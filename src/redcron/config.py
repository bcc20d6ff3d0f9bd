import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

log = logging.getLogger(__name__)


class ReleasePolicy(str, Enum):
    EXPIRE_AT_NEXT_TICK = "expire_at_next_tick"
    DELETE = "delete"


class ErrorEvent(BaseModel):
    """
    A store failure or a lost lease, attributed to the job it happened for.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    error: Exception = Field(..., description="The exception raised by the store, or an OwnershipLostError")
    job_name: str = Field(..., description="Name of the job the operation was performed for")
    operation: str = Field(..., description="One of 'claim', 'renew' or 'release'")
    tick: Optional[int] = Field(None, description="Epoch second of the tick being claimed or held")
    tags: Dict[str, str] = Field(default_factory=dict, description="Tags of the job")
    sequence_number: Optional[int] = Field(None, description="Sequence number of the job, if any")


class EngineConfig(BaseModel):
    """
    Tunables of a RedCron engine. All durations are in seconds.
    """
    op_timeout: float = Field(5.0, gt=0, description="Upper bound for every single store call")
    lease_ttl: float = Field(60.0, gt=0, description="TTL of the current-owner record, refreshed while the job runs")
    renew_interval: float = Field(1.0, gt=0, description="How often the lease is renewed")
    sample_base: float = Field(1 / 32, gt=0, description="Fixed part of the delay between two clock samples")
    sample_jitter: float = Field(0.25, ge=0, description="Upper bound of the random part of the sampling delay")
    key_prefix: str = Field("redcron:", description="Prefix of every key written to the store")
    release_policy: ReleasePolicy = Field(
        ReleasePolicy.EXPIRE_AT_NEXT_TICK,
        description="What to do with the current-owner record once a job finishes",
    )
    owner_id: Optional[str] = Field(None, description="Identity written into claims; generated when unset")
    on_error: Optional[Callable[[ErrorEvent], Any]] = Field(
        None, description="Called with every store failure and every lost lease"
    )

    @model_validator(mode="after")
    def check_intervals(self) -> "EngineConfig":
        if self.renew_interval >= self.lease_ttl:
            raise ValueError("renew_interval must be smaller than lease_ttl")
        if self.sample_base + self.sample_jitter >= 1:
            raise ValueError("sample_base + sample_jitter must be below one second")
        return self

    def report_error(self, event: ErrorEvent) -> None:
        log.warning(
            "%s failed for job '%s' (tick %s): %r",
            event.operation, event.job_name, event.tick, event.error,
        )
        if self.on_error is None:
            return
        try:
            self.on_error(event)
        except Exception:
            log.exception("on_error callback raised for job '%s'", event.job_name)
