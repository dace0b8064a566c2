"""CLI command implementations."""

import asyncio
import json
import sys
from argparse import Namespace
from typing import Any, Dict, List, Optional

from sprintpoint.cli.env_loader import (
    apply_cli_args_to_env,
    display_value,
    get_effective_config,
    load_env_file,
)

# Exit codes for `estimate`
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_RETRY_LATER = 2
EXIT_RECONFIGURE = 3


def get_version() -> str:
    """Get the package version."""
    try:
        from importlib.metadata import version

        return version("sprintpoint")
    except Exception:
        from sprintpoint import __version__

        return __version__


def _load_env(args: Namespace) -> bool:
    """Load ``--env-file`` when given; False when the file is missing."""
    env_file = getattr(args, "env_file", None)
    if not env_file:
        return True
    try:
        loaded = load_env_file(env_file)
        print(f"Read {len(loaded)} variables from {env_file} (existing env vars preserved)")
        return True
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return False


def _setup(args: Namespace):
    """Apply CLI overrides, load settings and configure logging."""
    from sprintpoint.config.settings import load_settings
    from sprintpoint.utils.logger import setup_logging

    apply_cli_args_to_env(vars(args))
    settings = load_settings()
    setup_logging(level=settings.log_level, json_logs=settings.json_logs)
    return settings


def cmd_version(args: Namespace) -> int:
    """Handle the 'version' command."""
    print(f"sprintpoint version {get_version()}")
    return 0


def cmd_config_show(args: Namespace) -> int:
    """Handle the 'config show' command."""
    if not _load_env(args):
        return 1

    print("Current Configuration:")
    print("=" * 50)
    for group, values in get_effective_config().items():
        print(f"\n[{group}]")
        for name, value in values.items():
            print(f"  {name}: {display_value(name, value)}")

    print("\nNote: Sensitive values (API keys, tokens) are masked with ****.")
    return 0


def cmd_serve(args: Namespace) -> int:
    """Handle the 'serve' command: run the HTTP API with uvicorn."""
    if not _load_env(args):
        return 1

    import uvicorn

    from sprintpoint.api.app import create_app
    from sprintpoint.utils.logger import get_logger

    settings = _setup(args)
    logger = get_logger(__name__)
    logger.info(f"Starting sprintpoint API on {settings.host}:{settings.port}")

    # log_config=None keeps the root handler installed by setup_logging
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)
    return 0


def _build_request(args: Namespace) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "ticketKey": args.ticket_key,
        "ticketSummary": args.summary,
        "ticketDescription": args.description or "",
        "boardId": args.board_id,
        "selectedRepositories": args.repo or [],
    }
    if args.sprint_count is not None:
        body["sprintCount"] = args.sprint_count
    return body


def _print_progress(progress: Optional[str], logs: List[Dict[str, Any]]) -> None:
    if progress:
        print(f"... {progress}", file=sys.stderr)


def cmd_estimate(args: Namespace) -> int:
    """Handle the 'estimate' command.

    Runs the estimation in-process, or through a running server with
    ``--server`` (start a job, then poll its status).
    """
    if not _load_env(args):
        return 1

    settings = _setup(args)
    body = _build_request(args)

    if args.server:
        return asyncio.run(_estimate_remote(args.server, body, settings))
    return asyncio.run(_estimate_local(body, settings))


async def _estimate_local(body: Dict[str, Any], settings: Any) -> int:
    from sprintpoint.estimation.service import (
        EstimationCredentials,
        build_estimation_service,
    )
    from sprintpoint.execution.error_classifier import classify_error
    from sprintpoint.models.request import EstimationRequest
    from sprintpoint.utils.logger import get_logger
    from sprintpoint.utils.retry import QuotaExceededError

    logger = get_logger(__name__)

    credentials = EstimationCredentials.from_sources(None, settings)
    problem = credentials.missing_configuration()
    if problem:
        print(f"Error: {problem}", file=sys.stderr)
        return EXIT_RECONFIGURE

    request = EstimationRequest.model_validate(body)
    service = build_estimation_service(credentials, settings)
    try:
        result = await service.estimate(
            request, on_progress=lambda message: print(f"... {message}", file=sys.stderr)
        )
    except QuotaExceededError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_RECONFIGURE
    except Exception as e:
        error_msg = str(e) if str(e) else f"{type(e).__name__}: (no message)"
        logger.error(f"Estimation failed: {error_msg}", exc_info=True)
        print(f"Error: {error_msg}", file=sys.stderr)
        return EXIT_RETRY_LATER if classify_error(e).retriable else EXIT_FAILED
    finally:
        await service.close()

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return EXIT_OK


async def _estimate_remote(server: str, body: Dict[str, Any], settings: Any) -> int:
    import httpx

    from sprintpoint.jobs.poller import JobFailedError, JobPoller, PollError

    async with httpx.AsyncClient(base_url=server, timeout=30.0) as client:
        response = await client.post("/api/estimate/start", json=body)
        response.raise_for_status()
        job_id = response.json()["jobId"]
        print(f"Started job {job_id}", file=sys.stderr)

        poller = JobPoller(
            client=client,
            interval=settings.poll_interval,
            max_attempts=settings.poll_max_attempts,
            on_progress=_print_progress,
        )
        try:
            data = await poller.poll(job_id)
        except JobFailedError as e:
            print(f"Error: {e}", file=sys.stderr)
            for entry in e.logs:
                print(f"  {entry.get('timestamp')} {entry.get('message')}", file=sys.stderr)
            return EXIT_FAILED
        except PollError as e:
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_FAILED

    print(json.dumps(data, indent=2, ensure_ascii=False))
    return EXIT_OK
