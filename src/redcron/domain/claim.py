import json
import os
import socket
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from .job import JobSpec


class ClaimRecord(BaseModel):
    """
    Value stored under both claim keys.

    Engines only need to agree on `time`, which tells which tick a claim
    belongs to; the other fields are informational.
    """
    time: datetime = Field(..., description="UTC time of the tick the claim belongs to")
    name: str
    repeat_sec: int
    offset_sec: int
    owner: str = Field(..., description="Identity of the process holding the claim")

    @classmethod
    def for_tick(cls, job: JobSpec, tick: int, owner: str) -> "ClaimRecord":
        return cls(
            time=datetime.fromtimestamp(tick, tz=timezone.utc),
            name=job.name,
            repeat_sec=job.repeat_sec,
            offset_sec=job.offset_sec,
            owner=owner,
        )

    @property
    def tick(self) -> int:
        return int(self.time.timestamp())


def owner_key(prefix: str, name: str) -> str:
    return f"{prefix}{json.dumps(name)}"


def tick_key(prefix: str, name: str, tick: int) -> str:
    return f"{owner_key(prefix, name)} {tick}"


def generate_owner_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
