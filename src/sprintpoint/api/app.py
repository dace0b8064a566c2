"""FastAPI application factory."""

from typing import Callable, Optional

from fastapi import FastAPI

from sprintpoint import __version__
from sprintpoint.config.settings import Settings, load_settings
from sprintpoint.estimation.service import (
    EstimationCredentials,
    EstimationService,
    build_estimation_service,
)
from sprintpoint.jobs.store import InMemoryJobStore, JobStore

from .routes import router

APP_NAME = "sprintpoint"

ServiceFactory = Callable[[EstimationCredentials, Settings], EstimationService]


def create_app(
    settings: Optional[Settings] = None,
    job_store: Optional[JobStore] = None,
    service_factory: Optional[ServiceFactory] = None,
) -> FastAPI:
    """Build the app; the store and service factory are injectable for tests."""
    settings = settings or load_settings()

    app = FastAPI(title=APP_NAME, version=__version__)
    app.state.settings = settings
    app.state.job_store = job_store or InMemoryJobStore(ttl_seconds=settings.job_ttl_seconds)
    app.state.service_factory = service_factory or build_estimation_service
    app.state.background_tasks = set()

    app.include_router(router)

    @app.get("/", tags=["health"])
    def health():
        return {"status": "ok", "service": APP_NAME}

    return app
