"""Environment file loader using python-dotenv."""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values, load_dotenv

from sprintpoint.config.settings import SENSITIVE_ENV_VAR_NAMES

# CLI option attribute -> environment variable it overrides
ARG_ENV_MAPPINGS: Dict[str, str] = {
    "host": "SPRINTPOINT_HOST",
    "port": "SPRINTPOINT_PORT",
    "ai_model": "AI_MODEL",
    "log_level": "LOG_LEVEL",
}

# Grouped for `config show`
CONFIG_GROUPS: Dict[str, tuple] = {
    "AI": (
        "AI_MODEL",
        "AI_TEMPERATURE",
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
    ),
    "Jira": ("JIRA_HOST", "JIRA_EMAIL", "JIRA_API_TOKEN", "JIRA_STORY_POINT_FIELD"),
    "GitHub": ("GITHUB_TOKEN",),
    "Limits": (
        "MAX_TOOL_ITERATIONS",
        "MAX_TOOL_CALLS_PER_ITERATION",
        "MAX_TOTAL_TOOL_CALLS",
        "TOOL_CALL_DELAY",
        "RETRY_MAX_ATTEMPTS",
        "RETRY_INITIAL_DELAY",
        "RETRY_MAX_DELAY",
    ),
    "Jobs": ("JOB_TTL_SECONDS", "POLL_INTERVAL", "POLL_MAX_ATTEMPTS"),
    "Server": ("SPRINTPOINT_HOST", "SPRINTPOINT_PORT"),
    "Logging": ("LOG_LEVEL", "JSON_LOGS"),
}


def load_env_file(env_file: str, override: bool = False) -> Dict[str, str]:
    """
    Load environment variables from a .env file.

    Args:
        env_file: Path to the .env file
        override: If True, override existing environment variables

    Returns:
        Dictionary of loaded environment variables

    Raises:
        FileNotFoundError: If the env file doesn't exist
    """
    env_path = Path(env_file)
    if not env_path.exists():
        raise FileNotFoundError(f"Environment file not found: {env_file}")

    load_dotenv(env_path, override=override)
    return {k: v for k, v in dotenv_values(env_path).items() if v is not None}


def apply_cli_args_to_env(args: Dict[str, Any]) -> Dict[str, str]:
    """
    Apply CLI arguments to environment variables.

    CLI arguments take precedence over existing environment variables.

    Returns:
        Dictionary of environment variables that were set
    """
    applied: Dict[str, str] = {}
    for attr_name, env_var in ARG_ENV_MAPPINGS.items():
        value = args.get(attr_name)
        if value is not None:
            os.environ[env_var] = str(value)
            applied[env_var] = str(value)

    if args.get("verbose"):
        os.environ["LOG_LEVEL"] = "DEBUG"
        applied["LOG_LEVEL"] = "DEBUG"

    return applied


def get_effective_config() -> Dict[str, Dict[str, Optional[str]]]:
    """Current environment values of every known variable, grouped."""
    return {
        group: {var: os.environ.get(var) for var in names}
        for group, names in CONFIG_GROUPS.items()
    }


def mask_sensitive_value(value: Optional[str], visible_chars: int = 4) -> str:
    """
    Mask a sensitive value for display.

    Returns:
        Masked string (e.g., "****abcd") or "(not set)"
    """
    if value is None:
        return "(not set)"
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]


def display_value(name: str, value: Optional[str]) -> str:
    if name in SENSITIVE_ENV_VAR_NAMES:
        return mask_sensitive_value(value)
    return value or "(not set)"
