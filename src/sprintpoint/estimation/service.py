"""Estimation pipeline: gather context, converse with the model, parse the answer."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional

from sprintpoint.ai_providers.base import BaseProvider
from sprintpoint.ai_providers.factory import (
    DEFAULT_MODEL_ID,
    create_provider,
    provider_for_model,
)
from sprintpoint.execution.orchestrator import (
    ConversationOrchestrator,
    ExecutionLimits,
    execution_limits_from_settings,
)
from sprintpoint.execution.result_parser import parse_estimation_result, summarize_result
from sprintpoint.integrations.base import CodeHost, TicketSource
from sprintpoint.integrations.github import GitHubClient
from sprintpoint.integrations.jira import JiraClient
from sprintpoint.models.estimation import EstimationResult
from sprintpoint.models.request import EstimationRequest
from sprintpoint.tools.estimation_tools import create_estimation_registry, describe_tools
from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.retry import RetryConfig, retry_config_from_settings

from .context import (
    MAX_SPRINT_TICKETS,
    compact_sprint_data,
    count_tickets,
    format_related_context,
    gather_related_ticket_context,
)
from .prompts import build_estimation_prompt

logger = get_logger(__name__)

DEFAULT_SPRINT_COUNT = 10

ProgressCallback = Callable[[str], None]

# Request headers that override settings, keyed by credential field
CREDENTIAL_HEADERS = {
    "jira_host": "X-Jira-Host",
    "jira_email": "X-Jira-Email",
    "jira_api_token": "X-Jira-Api-Token",
    "github_token": "X-GitHub-Token",
    "ai_model_id": "X-AI-Model-Id",
    "gemini_api_key": "X-Gemini-Api-Key",
    "openai_api_key": "X-Openai-Api-Key",
    "anthropic_api_key": "X-Anthropic-Api-Key",
}


@dataclass
class EstimationCredentials:
    """Per-job credentials and model choice."""

    jira_host: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    github_token: Optional[str] = None
    ai_model_id: str = DEFAULT_MODEL_ID
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    @classmethod
    def from_sources(
        cls, headers: Optional[Mapping[str, str]], settings: Any
    ) -> "EstimationCredentials":
        """Header values win; settings fill the gaps."""
        headers = headers or {}
        fallbacks = {
            "jira_host": settings.jira_host,
            "jira_email": settings.jira_email,
            "jira_api_token": settings.jira_api_token,
            "github_token": settings.github_token,
            "ai_model_id": settings.ai_model or DEFAULT_MODEL_ID,
            "gemini_api_key": settings.gemini_api_key,
            "openai_api_key": settings.openai_api_key,
            "anthropic_api_key": settings.anthropic_api_key,
        }
        values = {
            name: (headers.get(header) or "").strip() or fallbacks[name]
            for name, header in CREDENTIAL_HEADERS.items()
        }
        return cls(**values)

    @property
    def provider(self) -> str:
        return provider_for_model(self.ai_model_id)

    @property
    def ai_api_key(self) -> Optional[str]:
        return {
            "gemini": self.gemini_api_key,
            "openai": self.openai_api_key,
            "claude": self.anthropic_api_key,
        }.get(self.provider)

    def missing_configuration(self) -> Optional[str]:
        """User-facing message for the first missing setting, or None."""
        if not (self.jira_host and self.jira_email and self.jira_api_token):
            return (
                "Jira configuration not found. Set JIRA_HOST, JIRA_EMAIL and "
                "JIRA_API_TOKEN or send the X-Jira-* headers."
            )
        if not self.ai_api_key:
            return (
                f"{self.provider.upper()} API key is not configured. "
                "Set it in the environment or send it as a request header."
            )
        return None


class EstimationService:
    """Runs one estimation against the given collaborators and provider."""

    def __init__(
        self,
        ticket_source: TicketSource,
        provider: BaseProvider,
        code_host: Optional[CodeHost] = None,
        limits: Optional[ExecutionLimits] = None,
        retry_config: Optional[RetryConfig] = None,
        default_sprint_count: int = DEFAULT_SPRINT_COUNT,
        resources: Optional[List[Any]] = None,
    ):
        self.ticket_source = ticket_source
        self.code_host = code_host
        self.provider = provider
        self.limits = limits or ExecutionLimits()
        self.retry_config = retry_config or RetryConfig()
        self.default_sprint_count = default_sprint_count
        # Objects with an async close() owned by this service
        self._resources = resources or []

    async def estimate(
        self,
        request: EstimationRequest,
        on_progress: Optional[ProgressCallback] = None,
    ) -> EstimationResult:
        """
        Estimate story points for the requested ticket.

        Raises:
            QuotaExceededError: When the provider quota is exhausted
            ResultParseError: When the final answer holds no valid JSON
        """

        def report(message: str) -> None:
            logger.info(message)
            if on_progress is not None:
                on_progress(message)

        sprint_count = request.sprint_count or self.default_sprint_count
        report("Loading sprint data and related tickets...")
        sprints, related = await asyncio.gather(
            self.ticket_source.get_sprints_with_tickets(request.board_id, sprint_count),
            gather_related_ticket_context(
                request.ticket_key,
                request.ticket_description,
                self.ticket_source,
                self.code_host,
            ),
        )

        sprint_data = compact_sprint_data(sprints, exclude_key=request.ticket_key)
        original_count = sum(
            1 for sprint in sprints for t in sprint.tickets if t.key != request.ticket_key
        )
        report(
            f"Using at most {MAX_SPRINT_TICKETS} tickets for estimation "
            f"({original_count} -> {count_tickets(sprint_data)})"
        )

        registry = create_estimation_registry(self.ticket_source, self.code_host)
        prompt = build_estimation_prompt(
            ticket_key=request.ticket_key,
            ticket_summary=request.ticket_summary,
            ticket_description=request.ticket_description,
            sprint_data=sprint_data,
            tool_docs=describe_tools(registry),
            repositories=request.selected_repositories,
            related_context=format_related_context(related),
            custom_prompt=request.custom_prompt,
            tool_prompt=request.tool_prompt,
        )

        await self.provider.initialize()
        report(f"AI model: {self.provider.model_id}")

        orchestrator = ConversationOrchestrator(
            provider=self.provider,
            registry=registry,
            limits=self.limits,
            retry_config=self.retry_config,
            on_progress=report,
        )
        outcome = await orchestrator.run(prompt)

        result = parse_estimation_result(outcome.text)
        report(f"Estimated {request.ticket_key}: {summarize_result(result)}")
        return result

    async def close(self) -> None:
        """Shut down the provider and close owned HTTP clients."""
        try:
            await self.provider.shutdown()
        finally:
            for resource in self._resources:
                await resource.close()


def build_estimation_service(
    credentials: EstimationCredentials, settings: Any
) -> EstimationService:
    """Wire Jira, GitHub and the AI provider from credentials and settings."""
    jira = JiraClient(
        host=credentials.jira_host,
        email=credentials.jira_email,
        api_token=credentials.jira_api_token,
        story_point_field=settings.jira_story_point_field,
    )
    github = GitHubClient(credentials.github_token) if credentials.github_token else None

    provider = create_provider(
        credentials.provider,
        {
            "api_key": credentials.ai_api_key,
            "model_id": credentials.ai_model_id,
            "temperature": settings.get_ai_temperature(),
        },
    )
    logger.info(
        f"Estimation service: provider={credentials.provider}, "
        f"model={credentials.ai_model_id}, github={'on' if github else 'off'}"
    )

    return EstimationService(
        ticket_source=jira,
        provider=provider,
        code_host=github,
        limits=execution_limits_from_settings(settings),
        retry_config=retry_config_from_settings(settings),
        default_sprint_count=settings.default_sprint_count,
        resources=[client for client in (jira, github) if client is not None],
    )
