"""Configuration management for Sprintpoint."""

import logging
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Use standard logging for settings module to avoid circular imports
# This logger will be reconfigured by setup_logging() in CLI commands
logger = logging.getLogger(__name__)

# Sensitive environment variable names
# Used by Settings.__repr__ for masking and by `config show`
SENSITIVE_ENV_VAR_NAMES: frozenset = frozenset(
    {
        "GEMINI_API_KEY",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "JIRA_API_TOKEN",
        "GITHUB_TOKEN",
    }
)

_SENSITIVE_FIELD_NAMES: frozenset = frozenset(
    {name.lower() for name in SENSITIVE_ENV_VAR_NAMES}
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Request headers on the start endpoint override the credential fields
    per job; everything else is process-wide.
    """

    model_config = SettingsConfigDict(extra="ignore")

    _SENSITIVE_FIELDS: frozenset = _SENSITIVE_FIELD_NAMES

    def __repr__(self) -> str:
        """Return a representation with sensitive fields masked."""
        field_strs = []
        for field_name in type(self).model_fields:
            value = getattr(self, field_name, None)
            if field_name in self._SENSITIVE_FIELDS:
                masked = f"<{len(str(value))} chars>" if value else "None"
                field_strs.append(f"{field_name}={masked!r}")
            else:
                field_strs.append(f"{field_name}={value!r}")
        return f"{self.__class__.__name__}({', '.join(field_strs)})"

    def __str__(self) -> str:
        return self.__repr__()

    # AI provider configuration
    ai_model: str = Field(default="gemini-2.5-flash", validation_alias="AI_MODEL")
    ai_temperature: float = Field(default=0.0, validation_alias="AI_TEMPERATURE")
    gemini_api_key: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    openai_api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    anthropic_api_key: Optional[str] = Field(
        default=None, validation_alias="ANTHROPIC_API_KEY"
    )

    # Jira
    jira_host: Optional[str] = Field(default=None, validation_alias="JIRA_HOST")
    jira_email: Optional[str] = Field(default=None, validation_alias="JIRA_EMAIL")
    jira_api_token: Optional[str] = Field(default=None, validation_alias="JIRA_API_TOKEN")
    jira_story_point_field: str = Field(
        default="customfield_10016", validation_alias="JIRA_STORY_POINT_FIELD"
    )

    # GitHub (optional; PR tools return empty results without it)
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")

    # Estimation defaults
    default_sprint_count: int = Field(
        default=10, validation_alias="DEFAULT_SPRINT_COUNT", ge=1, le=50
    )

    # Tool-calling loop limits
    max_tool_iterations: int = Field(
        default=10, validation_alias="MAX_TOOL_ITERATIONS", ge=1, le=50
    )
    max_tool_calls_per_iteration: int = Field(
        default=5, validation_alias="MAX_TOOL_CALLS_PER_ITERATION", ge=1, le=20
    )
    max_total_tool_calls: int = Field(
        default=12, validation_alias="MAX_TOTAL_TOOL_CALLS", ge=0, le=100
    )
    tool_call_delay: float = Field(
        default=1.0,
        validation_alias="TOOL_CALL_DELAY",
        ge=0.0,
        description="Seconds between tool calls and before sending results back.",
    )

    # Retry policy for model calls
    retry_max_attempts: int = Field(
        default=5, validation_alias="RETRY_MAX_ATTEMPTS", ge=0, le=20
    )
    retry_initial_delay: float = Field(
        default=5.0, validation_alias="RETRY_INITIAL_DELAY", ge=0.0
    )
    retry_max_delay: float = Field(default=120.0, validation_alias="RETRY_MAX_DELAY", ge=0.0)

    # Job store and poller
    job_ttl_seconds: float = Field(default=600.0, validation_alias="JOB_TTL_SECONDS", gt=0)
    poll_interval: float = Field(default=2.0, validation_alias="POLL_INTERVAL", gt=0)
    poll_max_attempts: int = Field(default=300, validation_alias="POLL_MAX_ATTEMPTS", ge=1)

    # Server
    host: str = Field(default="127.0.0.1", validation_alias="SPRINTPOINT_HOST")
    port: int = Field(default=8000, validation_alias="SPRINTPOINT_PORT", ge=1, le=65535)

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    json_logs: bool = Field(default=False, validation_alias="JSON_LOGS")

    @field_validator("json_logs", mode="before")
    @classmethod
    def parse_bool_from_env(cls, v: Any) -> bool:
        """Handle empty strings and various boolean representations from env vars."""
        if v is None or v == "":
            return False
        if isinstance(v, bool):
            return v
        if isinstance(v, str):
            return v.lower().strip() in ("true", "1", "yes")
        return bool(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> str:
        """Upper-case the level name, falling back to INFO for unknown names."""
        if not value:
            return "INFO"
        level = str(value).strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Falling back to 'INFO'.")
            return "INFO"
        return level

    def get_ai_temperature(self) -> float:
        """AI temperature clamped to [0.0, 2.0]."""
        return max(0.0, min(2.0, float(self.ai_temperature)))


def load_settings() -> Settings:
    """Load settings from environment variables."""
    return Settings()
