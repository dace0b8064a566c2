"""Pytest configuration and shared fixtures."""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

# Add src directory to Python path for tests
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from sprintpoint.ai_providers.base import (  # noqa: E402
    BaseProvider,
    ProviderMessage,
    ProviderResponse,
    ToolCall,
)
from sprintpoint.config.settings import Settings  # noqa: E402
from sprintpoint.integrations.base import (  # noqa: E402
    FileDiff,
    PullRequest,
    PullRequestWithFiles,
    Sprint,
    Ticket,
)

ENV_VARS_TO_CLEAR = (
    "AI_MODEL",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "JIRA_HOST",
    "JIRA_EMAIL",
    "JIRA_API_TOKEN",
    "GITHUB_TOKEN",
    "SPRINTPOINT_HOST",
    "SPRINTPOINT_PORT",
)


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Setup test environment variables."""
    # Credentials from a developer shell must not leak into tests
    for key in ENV_VARS_TO_CLEAR:
        monkeypatch.delenv(key, raising=False)

    test_env = {
        "LOG_LEVEL": "DEBUG",
        "JSON_LOGS": "false",
    }
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)


def estimation_json(points: Any = 3, baseline_key: str = "KT-1", **extra: Any) -> str:
    """Model answer carrying an estimation payload in a ```json fence."""
    payload = {
        "estimatedPoints": points,
        "reasoning": "Same shape as the baseline",
        "baseline": {"key": baseline_key, "points": points},
    }
    payload.update(extra)
    return f"Here is the estimate.\n```json\n{json.dumps(payload)}\n```"


def response(content: str = "", *tool_calls: ToolCall) -> ProviderResponse:
    return ProviderResponse(content=content, model="fake-model", tool_calls=list(tool_calls))


def call(name: str, call_id: Optional[str] = None, **arguments: Any) -> ToolCall:
    return ToolCall(name=name, arguments=arguments, id=call_id or f"call_{name}")


class FakeProvider(BaseProvider):
    """Provider that replays scripted responses.

    Each script entry is a ProviderResponse or an exception to raise. The
    messages of every call are recorded as a copy.
    """

    def __init__(self, script: List[Any], model_id: str = "fake-model"):
        super().__init__({"model_id": model_id})
        self.script = list(script)
        self.calls: List[List[ProviderMessage]] = []
        self.tools_seen: List[Optional[List[Dict[str, Any]]]] = []
        self.initialized = False
        self.shut_down = False

    async def initialize(self) -> None:
        self.initialized = True

    async def chat_completion(self, messages, tools=None) -> ProviderResponse:
        self.calls.append(list(messages))
        self.tools_seen.append(tools)
        if not self.script:
            raise AssertionError("FakeProvider script exhausted")
        step = self.script.pop(0)
        if isinstance(step, BaseException):
            raise step
        return step

    async def shutdown(self) -> None:
        self.shut_down = True


class FakeTicketSource:
    """In-memory ticket tracker."""

    def __init__(
        self,
        tickets: Optional[Dict[str, Ticket]] = None,
        dev_links: Optional[Dict[str, List[str]]] = None,
        sprints: Optional[List[Sprint]] = None,
    ):
        self.tickets = tickets or {}
        self.dev_links = dev_links or {}
        self.sprints = sprints or []
        self.sprint_requests: List[tuple] = []

    async def get_issue(self, key: str) -> Ticket:
        if key not in self.tickets:
            raise LookupError(f"Issue does not exist: {key}")
        return self.tickets[key]

    async def get_dev_panel_links(self, key: str) -> List[str]:
        return list(self.dev_links.get(key, []))

    async def get_sprints_with_tickets(self, board_id: int, count: int) -> List[Sprint]:
        self.sprint_requests.append((board_id, count))
        return self.sprints[:count]


class FakeCodeHost:
    """In-memory pull request host keyed by (owner, repo, number)."""

    def __init__(
        self,
        pull_requests: Optional[Dict[tuple, PullRequestWithFiles]] = None,
        search_results: Optional[List[PullRequest]] = None,
        recent: Optional[List[PullRequest]] = None,
    ):
        self.pull_requests = pull_requests or {}
        self.search_results = search_results or []
        self.recent = recent or []
        self.queries: List[str] = []
        self.recent_requests: List[tuple] = []

    async def get_pull_requests_from_urls(self, urls: List[str]) -> List[PullRequest]:
        found = []
        for details in self.pull_requests.values():
            if details.pull_request.url in urls:
                found.append(details.pull_request)
        return found

    async def get_pull_request_with_files(
        self, owner: str, repo: str, number: int
    ) -> PullRequestWithFiles:
        key = (owner, repo, number)
        if key not in self.pull_requests:
            raise LookupError(f"No such pull request: {owner}/{repo}#{number}")
        return self.pull_requests[key]

    async def search_pull_requests(self, query: str) -> List[PullRequest]:
        self.queries.append(query)
        return list(self.search_results)

    async def list_recent_pull_requests(
        self, owner: str, repo: str, limit: int
    ) -> List[PullRequest]:
        self.recent_requests.append((owner, repo, limit))
        return list(self.recent)[:limit]


def make_pull_request(
    number: int, repo: str = "acme/app", files: Optional[List[FileDiff]] = None, **fields
) -> PullRequestWithFiles:
    owner, name = repo.split("/")
    pr = PullRequest(
        number=number,
        url=f"https://github.com/{owner}/{name}/pull/{number}",
        title=fields.pop("title", f"PR {number}"),
        **fields,
    )
    return PullRequestWithFiles(pull_request=pr, files=files or [])


@pytest.fixture
def settings():
    """Settings with Jira and Gemini configured and no delays."""
    return Settings(
        JIRA_HOST="example.atlassian.net",
        JIRA_EMAIL="dev@example.com",
        JIRA_API_TOKEN="jira-token",
        GEMINI_API_KEY="gemini-key",
        TOOL_CALL_DELAY=0,
        RETRY_INITIAL_DELAY=0,
    )


@pytest.fixture
def sprints():
    """Two closed sprints, most recent first."""
    return [
        Sprint(
            id=2,
            name="Sprint 2",
            tickets=[
                Ticket(key="KT-1", summary="Add PDF export", story_points=3),
                Ticket(key="KT-2", summary="Fix typo", story_points=None),
            ],
        ),
        Sprint(
            id=1,
            name="Sprint 1",
            tickets=[
                Ticket(
                    key="KT-3",
                    summary="New billing API",
                    description="Design and implement",
                    story_points=8,
                    created="2024-01-01T00:00:00.000+0000",
                    resolved="2024-01-05T00:00:00.000+0000",
                ),
            ],
        ),
    ]
