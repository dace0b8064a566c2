"""Collaborator interfaces and data types for ticket and code hosts.

The estimation tools and context gathering depend only on these
protocols; ``JiraClient`` and ``GitHubClient`` are the production
implementations and tests substitute in-memory fakes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

GITHUB_PR_URL_PATTERN = r"github\.com/([^/]+)/([^/]+)/pull/(\d+)"


class IntegrationError(Exception):
    """HTTP failure talking to Jira or GitHub."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def days_between(start: Optional[str], end: Optional[str]) -> Optional[float]:
    """Whole-day-rounded distance between two ISO timestamps, or None."""
    if not start or not end:
        return None
    try:
        delta = parse_timestamp(end) - parse_timestamp(start)
    except ValueError:
        return None
    return max(0.0, round(delta.total_seconds() / 86400, 1))


def parse_timestamp(value: str) -> datetime:
    """Parse ISO timestamps including Jira's ``+0900`` offsets and ``Z``."""
    text = value.strip().replace("Z", "+00:00")
    # Jira sends "2024-01-02T03:04:05.000+0900"
    if len(text) >= 5 and text[-5] in "+-" and text[-4:].isdigit():
        text = f"{text[:-2]}:{text[-2:]}"
    return datetime.fromisoformat(text)


@dataclass
class Ticket:
    key: str
    summary: str
    description: str = ""
    story_points: Optional[float] = None
    status: str = ""
    issue_type: str = ""
    created: Optional[str] = None
    resolved: Optional[str] = None

    @property
    def days_to_complete(self) -> Optional[float]:
        return days_between(self.created, self.resolved)


@dataclass
class Sprint:
    id: int
    name: str
    state: str = "closed"
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    complete_date: Optional[str] = None
    tickets: List[Ticket] = field(default_factory=list)


@dataclass
class PullRequest:
    number: int
    url: str
    title: str
    state: str = "closed"
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    commits: int = 0
    created_at: Optional[str] = None
    merged_at: Optional[str] = None
    author: Optional[str] = None


@dataclass
class FileDiff:
    filename: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    patch: Optional[str] = None


@dataclass
class PullRequestWithFiles:
    pull_request: PullRequest
    files: List[FileDiff] = field(default_factory=list)


class TicketSource(Protocol):
    """Read access to the ticket tracker."""

    async def get_issue(self, key: str) -> Ticket: ...

    async def get_dev_panel_links(self, key: str) -> List[str]:
        """Pull request URLs linked to the ticket; empty when unavailable."""
        ...

    async def get_sprints_with_tickets(self, board_id: int, count: int) -> List[Sprint]:
        """Most recent closed sprints first, each with its tickets."""
        ...


class CodeHost(Protocol):
    """Read access to pull requests."""

    async def get_pull_requests_from_urls(self, urls: List[str]) -> List[PullRequest]: ...

    async def get_pull_request_with_files(
        self, owner: str, repo: str, number: int
    ) -> PullRequestWithFiles: ...

    async def search_pull_requests(self, query: str) -> List[PullRequest]: ...

    async def list_recent_pull_requests(
        self, owner: str, repo: str, limit: int
    ) -> List[PullRequest]: ...
