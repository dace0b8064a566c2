#!/usr/bin/env python3
"""Main CLI entry point for Sprintpoint."""

import argparse
import sys
from typing import List, Optional

from sprintpoint.cli.commands import (
    cmd_config_show,
    cmd_estimate,
    cmd_serve,
    cmd_version,
    get_version,
)


def _add_env_file(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--env-file",
        "-e",
        metavar="FILE",
        help="Load environment from a .env file (existing env vars win)",
    )


def _add_common_run_arguments(parser: argparse.ArgumentParser) -> None:
    _add_env_file(parser)
    parser.add_argument("--log-level", help="Set LOG_LEVEL")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output (sets LOG_LEVEL=DEBUG)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="sprintpoint",
        description="Sprintpoint - story point estimation with an LLM tool-calling loop",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sprintpoint serve --env-file .env --port 8000
  sprintpoint estimate KT-100 --summary "Add CSV export button" --board-id 5
  sprintpoint estimate KT-100 --summary "Add CSV export" --board-id 5 --server http://localhost:8000
  sprintpoint config show --env-file .env
  sprintpoint version
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
        metavar="COMMAND",
    )

    # 'serve' subcommand
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API",
        description="Serve the estimation start/status endpoints with uvicorn",
    )
    _add_common_run_arguments(serve_parser)
    serve_parser.add_argument("--host", help="Set SPRINTPOINT_HOST")
    serve_parser.add_argument("--port", type=int, help="Set SPRINTPOINT_PORT")

    # 'estimate' subcommand
    estimate_parser = subparsers.add_parser(
        "estimate",
        help="Estimate one ticket",
        description="Estimate story points for one ticket and print the JSON result",
    )
    _add_common_run_arguments(estimate_parser)
    estimate_parser.add_argument("ticket_key", metavar="TICKET_KEY", help="Jira ticket key")
    estimate_parser.add_argument("--summary", "-s", required=True, help="Ticket summary")
    estimate_parser.add_argument("--description", "-d", help="Ticket description")
    estimate_parser.add_argument("--board-id", "-b", type=int, required=True, help="Jira board id")
    estimate_parser.add_argument("--sprint-count", type=int, help="Closed sprints to use")
    estimate_parser.add_argument(
        "--repo",
        action="append",
        metavar="OWNER/NAME",
        help="Repository to search for related PRs (repeatable)",
    )
    estimate_parser.add_argument("--ai-model", help="Set AI_MODEL")
    estimate_parser.add_argument(
        "--server",
        metavar="URL",
        help="Run through a sprintpoint server (start job and poll) instead of in-process",
    )

    # 'config' subcommand with 'show' subsubcommand
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="View the effective configuration",
    )
    config_subparsers = config_parser.add_subparsers(
        dest="config_command",
        title="config commands",
        metavar="SUBCOMMAND",
    )
    config_show_parser = config_subparsers.add_parser(
        "show",
        help="Show current configuration",
        description="Display the effective configuration with secrets masked",
    )
    _add_env_file(config_show_parser)

    # 'version' subcommand
    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the sprintpoint version",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "estimate":
        return cmd_estimate(args)
    elif args.command == "config":
        if args.config_command == "show":
            return cmd_config_show(args)
        parser.parse_args(["config", "--help"])
        return 0
    elif args.command == "version":
        return cmd_version(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
