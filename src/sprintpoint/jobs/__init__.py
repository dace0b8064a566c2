"""Background job protocol: store, runner and client-side poller."""

from .poller import (
    JobFailedError,
    JobNotFoundError,
    JobPoller,
    PollAbortedError,
    PollError,
    PollTimeoutError,
    poll_job_status,
)
from .runner import describe_failure, run_estimation_job
from .store import (
    InMemoryJobStore,
    Job,
    JobLogEntry,
    JobStateError,
    JobStatus,
    JobStore,
    generate_job_id,
)

__all__ = [
    "InMemoryJobStore",
    "Job",
    "JobLogEntry",
    "JobStateError",
    "JobStatus",
    "JobStore",
    "generate_job_id",
    "describe_failure",
    "run_estimation_job",
    "JobPoller",
    "PollError",
    "JobNotFoundError",
    "JobFailedError",
    "PollTimeoutError",
    "PollAbortedError",
    "poll_job_status",
]
