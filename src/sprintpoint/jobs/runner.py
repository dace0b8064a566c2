"""Background execution of one estimation job.

The runner is the only writer of a job after creation. Every failure is
captured into the job's ``error`` field; nothing propagates past the task.
"""

from typing import Any, Protocol

from sprintpoint.execution.error_classifier import classify_error
from sprintpoint.execution.result_parser import ResultParseError
from sprintpoint.models.estimation import EstimationResult
from sprintpoint.models.request import EstimationRequest
from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.retry import QuotaExceededError

from .store import JobStateError, JobStatus, JobStore

logger = get_logger(__name__)

STARTING_MESSAGE = "Starting estimation..."
COMPLETED_MESSAGE = "Completed"


class Estimator(Protocol):
    async def estimate(
        self, request: EstimationRequest, on_progress: Any = None
    ) -> EstimationResult: ...

    async def close(self) -> None: ...


def describe_failure(error: BaseException) -> str:
    """
    User-facing failure message.

    Distinguishes three cases: reconfigure (quota), retry later (transient
    service faults that outlasted the retries) and start again (anything
    else).
    """
    if isinstance(error, QuotaExceededError):
        return str(error)

    if isinstance(error, ResultParseError):
        return (
            "Could not read the estimation result from the AI response. "
            "Please start the estimation again."
        )

    classified = classify_error(error)
    if classified.retriable:
        return (
            f"The AI service is temporarily unavailable ({classified.message}). "
            "Please retry later."
        )
    return f"Estimation failed: {error}. Please start the estimation again."


def mark_failed(store: JobStore, job_id: str, message: str) -> None:
    """Move a job to error, ignoring jobs that already reached a terminal state."""
    try:
        store.update(job_id, status=JobStatus.ERROR, error=message)
    except JobStateError as e:
        logger.warning(f"Could not mark job {job_id} as failed: {e}")


async def run_estimation_job(
    store: JobStore,
    job_id: str,
    service: Estimator,
    request: EstimationRequest,
) -> None:
    """Run ``service.estimate`` for ``request`` and record the outcome on the job."""

    def on_progress(message: str) -> None:
        store.update(job_id, progress=message)
        store.append_log(job_id, message)

    try:
        store.update(job_id, status=JobStatus.PROCESSING, progress=STARTING_MESSAGE)
        store.append_log(job_id, STARTING_MESSAGE)

        result = await service.estimate(request, on_progress)

        store.update(
            job_id,
            status=JobStatus.COMPLETED,
            progress=COMPLETED_MESSAGE,
            result=result.to_dict(),
        )
        logger.info(f"Job {job_id} completed")
    except Exception as e:
        logger.error(f"Job {job_id} failed: {e}", exc_info=True)
        message = describe_failure(e)
        store.append_log(job_id, message)
        mark_failed(store, job_id, message)
    finally:
        try:
            await service.close()
        except Exception as e:
            logger.warning(f"Error closing estimation service for job {job_id}: {e}")
