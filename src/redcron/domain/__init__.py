from .job import JobSpec, JobContext
from .claim import ClaimRecord, owner_key, tick_key

__all__ = ["JobSpec", "JobContext", "ClaimRecord", "owner_key", "tick_key"]
