"""Client side of the job protocol: poll the status endpoint until terminal.

Polling is an explicit loop with a fixed interval and an attempt cap.
Empty or unparsable bodies and transport errors are treated as transient
(a server mid-restart) but still count toward the cap. Stopping the
poller never cancels the job on the server.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx

from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_PATH = "/api/estimate/status/{job_id}"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_ATTEMPTS = 300
JOB_NOT_FOUND_MESSAGE = "Job not found. Please start the estimation again."

ProgressHandler = Callable[[Optional[str], List[Dict[str, Any]]], None]


class PollError(Exception):
    """Base class for polling failures."""

    def __init__(self, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.job_id = job_id


class JobNotFoundError(PollError):
    """The server does not know the job (never created, served or evicted)."""


class JobFailedError(PollError):
    """The job finished with status error."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        logs: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, job_id)
        self.logs = logs or []


class PollTimeoutError(PollError):
    """The attempt cap was reached before the job finished."""


class PollAbortedError(PollError):
    """The caller asked to stop polling."""


class JobPoller:
    """Polls one server's status endpoint."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        client: Optional[httpx.AsyncClient] = None,
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
        on_progress: Optional[ProgressHandler] = None,
        timeout: float = 30.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self.on_progress = on_progress
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _fetch(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Decoded status body, or None when the response is transient."""
        try:
            response = await self._client.get(STATUS_PATH.format(job_id=job_id))
        except httpx.TransportError as e:
            logger.warning(f"Status request for {job_id} failed: {e}")
            return None

        if response.status_code == 404:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            message = JOB_NOT_FOUND_MESSAGE
            if isinstance(payload, dict) and payload.get("error"):
                message = payload["error"]
            raise JobNotFoundError(message, job_id)

        if not response.content or not response.content.strip():
            logger.warning(f"Empty status body for {job_id} (HTTP {response.status_code})")
            return None

        try:
            body = response.json()
        except ValueError:
            logger.warning(f"Unparsable status body for {job_id} (HTTP {response.status_code})")
            return None

        if not isinstance(body, dict) or "status" not in body:
            logger.warning(f"Unexpected status body for {job_id}: {body!r}")
            return None
        return body

    async def _wait(self, abort_event: Optional[asyncio.Event]) -> None:
        if abort_event is None:
            await asyncio.sleep(self.interval)
            return
        try:
            await asyncio.wait_for(abort_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return

    async def poll(
        self, job_id: str, abort_event: Optional[asyncio.Event] = None
    ) -> Any:
        """
        Poll until the job completes and return its ``data``.

        Raises:
            JobNotFoundError: Server answered 404
            JobFailedError: Job ended with status error
            PollTimeoutError: ``max_attempts`` requests without a terminal status
            PollAbortedError: ``abort_event`` was set
        """
        for attempt in range(1, self.max_attempts + 1):
            if abort_event is not None and abort_event.is_set():
                raise PollAbortedError(f"Polling for job {job_id} aborted", job_id)

            body = await self._fetch(job_id)
            if body is not None:
                status = body.get("status")
                if status == "completed":
                    logger.info(f"Job {job_id} completed after {attempt} polls")
                    return body.get("data")
                if status == "error":
                    raise JobFailedError(
                        body.get("error") or "Estimation failed",
                        job_id,
                        logs=body.get("logs"),
                    )
                if self.on_progress is not None:
                    self.on_progress(body.get("progress"), body.get("logs") or [])

            if attempt < self.max_attempts:
                await self._wait(abort_event)

        raise PollTimeoutError(
            f"Job {job_id} did not finish after {self.max_attempts} status checks",
            job_id,
        )

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "JobPoller":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


async def poll_job_status(
    job_id: str,
    base_url: str = "http://127.0.0.1:8000",
    interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
    on_progress: Optional[ProgressHandler] = None,
    abort_event: Optional[asyncio.Event] = None,
) -> Any:
    """Poll ``job_id`` on ``base_url`` with a short-lived client."""
    async with JobPoller(
        base_url=base_url,
        interval=interval,
        max_attempts=max_attempts,
        on_progress=on_progress,
    ) as poller:
        return await poller.poll(job_id, abort_event=abort_event)
