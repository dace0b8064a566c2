"""Start and status endpoints of the estimation job protocol."""

import asyncio
from typing import Any, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from sprintpoint.estimation.service import EstimationCredentials
from sprintpoint.jobs.poller import JOB_NOT_FOUND_MESSAGE
from sprintpoint.jobs.runner import mark_failed, run_estimation_job
from sprintpoint.jobs.store import JobStatus, JobStore, generate_job_id
from sprintpoint.models.request import EstimationRequest
from sprintpoint.utils.logger import get_logger

from .schemas import ErrorResponse, StartResponse, StatusResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/api/estimate", tags=["estimate"])


def _describe_validation_error(error: ValidationError) -> str:
    fields = sorted({str(err["loc"][0]) for err in error.errors() if err.get("loc")})
    return f"Missing or invalid fields: {', '.join(fields)}"


async def _read_request(request: Request) -> Tuple[Optional[EstimationRequest], Optional[str]]:
    try:
        body: Any = await request.json()
    except ValueError:
        return None, "Could not parse the request body."
    if not isinstance(body, dict):
        return None, "Could not parse the request body."
    try:
        return EstimationRequest.model_validate(body), None
    except ValidationError as e:
        return None, _describe_validation_error(e)


def _spawn(request: Request, coroutine) -> asyncio.Task:
    """Schedule ``coroutine`` and keep a reference until it finishes."""
    tasks = request.app.state.background_tasks
    task = asyncio.create_task(coroutine)
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return task


@router.post("/start", response_model=StartResponse)
async def start_estimation(request: Request) -> StartResponse:
    """
    Create a job and run the estimation in the background.

    Always answers ``{success: true, jobId}``; configuration and request
    problems are recorded on the job and surface through the status endpoint.
    """
    state = request.app.state
    store: JobStore = state.job_store
    job_id = generate_job_id()
    store.create(job_id)

    try:
        credentials = EstimationCredentials.from_sources(request.headers, state.settings)
        problem = credentials.missing_configuration()
        estimation_request = None
        if problem is None:
            estimation_request, problem = await _read_request(request)

        if problem is not None:
            logger.warning(f"Job {job_id} rejected: {problem}")
            mark_failed(store, job_id, problem)
            return StartResponse(jobId=job_id)

        service = state.service_factory(credentials, state.settings)
        _spawn(request, run_estimation_job(store, job_id, service, estimation_request))
        logger.info(f"Job {job_id} started for {estimation_request.ticket_key}")
    except Exception as e:
        logger.error(f"Failed to start job {job_id}: {e}", exc_info=True)
        mark_failed(store, job_id, f"Failed to start the estimation: {e}")

    return StartResponse(jobId=job_id)


@router.get(
    "/status/{job_id}",
    response_model=StatusResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ErrorResponse}},
)
async def get_estimation_status(job_id: str, request: Request):
    """Current job state; terminal jobs are deleted once served."""
    store: JobStore = request.app.state.job_store
    job = store.get(job_id)
    if job is None:
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(error=JOB_NOT_FOUND_MESSAGE).model_dump(),
        )

    logs = [entry.to_dict() for entry in job.logs]

    if job.status == JobStatus.COMPLETED:
        response = StatusResponse(success=True, status=job.status.value, data=job.result)
        store.delete(job_id)
        return response

    if job.status == JobStatus.ERROR:
        response = StatusResponse(
            success=False, status=job.status.value, error=job.error, logs=logs
        )
        store.delete(job_id)
        return response

    return StatusResponse(
        success=True, status=job.status.value, progress=job.progress, logs=logs
    )
