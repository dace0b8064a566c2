"""In-process job store for long-running estimations.

The start endpoint creates a job and returns its id at once; a background
task is the only writer afterwards and the status endpoint reads the job
and deletes it after serving a terminal status. Jobs older than the TTL
are evicted regardless of status so abandoned jobs do not accumulate.
State is process-local and lost on restart.
"""

import secrets
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_JOB_TTL_SECONDS = 600.0

_JOB_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_JOB_ID_SUFFIX_LENGTH = 7


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


# Forward-only transitions; terminal states have no successors
_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {
        JobStatus.PENDING,
        JobStatus.PROCESSING,
        JobStatus.COMPLETED,
        JobStatus.ERROR,
    },
    JobStatus.PROCESSING: {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.ERROR},
    JobStatus.COMPLETED: set(),
    JobStatus.ERROR: set(),
}

_UPDATABLE_FIELDS = ("status", "progress", "result", "error")


class JobStateError(Exception):
    """Raised on an illegal job status transition or inconsistent fields."""


@dataclass
class JobLogEntry:
    timestamp: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"timestamp": self.timestamp, "message": self.message}


@dataclass
class Job:
    """State of one estimation job."""

    id: str
    status: JobStatus = JobStatus.PENDING
    progress: Optional[str] = None
    logs: List[JobLogEntry] = field(default_factory=list)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    created_at: float = 0.0
    updated_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "logs": [entry.to_dict() for entry in self.logs],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


def generate_job_id(clock: Callable[[], float] = time.time) -> str:
    """Opaque job id: ``job_<epoch-ms>_<7 random base36 chars>``."""
    suffix = "".join(
        secrets.choice(_JOB_ID_ALPHABET) for _ in range(_JOB_ID_SUFFIX_LENGTH)
    )
    return f"job_{int(clock() * 1000)}_{suffix}"


def _validate_transition(job: Job, new_status: JobStatus) -> None:
    if new_status not in _ALLOWED_TRANSITIONS[job.status]:
        raise JobStateError(
            f"Job {job.id}: cannot change status from {job.status.value} to {new_status.value}"
        )


class JobStore(ABC):
    """Keyed store of job state."""

    @abstractmethod
    def create(self, job_id: str) -> Job:
        """Create a pending job."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[Job]:
        """Return a snapshot of the job, or None when unknown or expired."""

    @abstractmethod
    def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        """Merge ``fields`` into the job; returns the merged job or None if missing."""

    @abstractmethod
    def append_log(self, job_id: str, message: str) -> Optional[Job]:
        """Append a timestamped log line; returns the job or None if missing."""

    @abstractmethod
    def delete(self, job_id: str) -> bool:
        """Remove the job; returns whether it existed."""

    @abstractmethod
    def sweep(self) -> int:
        """Evict jobs older than the TTL; returns the number evicted."""


class InMemoryJobStore(JobStore):
    """Dict-backed JobStore guarded by a lock.

    ``clock`` returns epoch seconds and is injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_JOB_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    @staticmethod
    def _snapshot(job: Job) -> Job:
        return replace(job, logs=list(job.logs))

    def _expired(self, job: Job, now: float) -> bool:
        return now - job.created_at > self.ttl_seconds

    def _live(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        if job is not None and self._expired(job, self._clock()):
            del self._jobs[job_id]
            logger.debug(f"Evicted expired job {job_id}")
            return None
        return job

    def _sweep_locked(self) -> int:
        now = self._clock()
        expired = [job_id for job_id, job in self._jobs.items() if self._expired(job, now)]
        for job_id in expired:
            del self._jobs[job_id]
        if expired:
            logger.info(f"Swept {len(expired)} expired jobs")
        return len(expired)

    def create(self, job_id: str) -> Job:
        with self._lock:
            self._sweep_locked()
            now = self._clock()
            job = Job(id=job_id, created_at=now, updated_at=now)
            self._jobs[job_id] = job
            return self._snapshot(job)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._live(job_id)
            return self._snapshot(job) if job else None

    def update(self, job_id: str, **fields: Any) -> Optional[Job]:
        unknown = set(fields) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        with self._lock:
            job = self._live(job_id)
            if job is None:
                return None

            status = job.status
            if "status" in fields:
                status = JobStatus(fields["status"])
                _validate_transition(job, status)

            merged = replace(job, **{k: v for k, v in fields.items() if k != "status"})
            merged.status = status
            if merged.result is not None and status != JobStatus.COMPLETED:
                raise JobStateError(f"Job {job_id}: result requires status completed")
            if merged.error is not None and status != JobStatus.ERROR:
                raise JobStateError(f"Job {job_id}: error requires status error")

            merged.updated_at = self._clock()
            self._jobs[job_id] = merged
            return self._snapshot(merged)

    def append_log(self, job_id: str, message: str) -> Optional[Job]:
        with self._lock:
            job = self._live(job_id)
            if job is None:
                return None
            now = self._clock()
            timestamp = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()
            job.logs.append(JobLogEntry(timestamp=timestamp, message=message))
            job.updated_at = now
            return self._snapshot(job)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def sweep(self) -> int:
        with self._lock:
            return self._sweep_locked()
