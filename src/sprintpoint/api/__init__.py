"""HTTP API: job start/status endpoints and health check."""

from .app import create_app

__all__ = ["create_app"]
