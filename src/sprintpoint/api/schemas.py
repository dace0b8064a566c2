"""Response bodies of the estimation endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class StartResponse(BaseModel):
    success: bool = True
    jobId: str


class LogEntry(BaseModel):
    timestamp: str
    message: str


class StatusResponse(BaseModel):
    success: bool
    status: str
    progress: Optional[str] = None
    logs: Optional[List[LogEntry]] = None

    # Present only when the job is completed
    data: Optional[Dict[str, Any]] = None

    # Present only when the job failed
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
