"""Estimation tools the model can call during the conversation.

Tools are bound methods of ``EstimationToolkit`` so each registry works
against the ticket source and code host of one estimation job. Large
results are truncated deterministically (file count and patch length
caps) to keep prompts bounded.
"""

import os
import re
from collections import Counter
from typing import Any, Dict, List, Optional

from sprintpoint.integrations.base import (
    GITHUB_PR_URL_PATTERN,
    CodeHost,
    PullRequest,
    TicketSource,
)
from sprintpoint.utils.logger import get_logger

from .registry import ToolRegistry

logger = get_logger(__name__)

MAX_DESCRIPTION_LENGTH = 2000
MAX_FILES = 15
MAX_PATCH_LENGTH = 500
TRUNCATION_MARKER = "\n... (truncated)"
MAX_SEARCH_RESULTS = 10
DEFAULT_RECENT_PRS = 20
MAX_RECENT_PRS = 50
MAX_MODULES = 5
MAX_PATTERNS = 5

# (label, substrings) checked against each patch, in this order
CODE_PATTERNS = (
    ("type definitions", ("interface ", "type ")),
    ("async code", ("async ", "await ")),
    ("error handling", ("try {", "catch (", "try:", "except ")),
    ("tests", ("test(", "describe(", "def test_")),
    ("database queries", ("SELECT ", "INSERT ")),
)

EFFORT_BY_COMPLEXITY = {
    "low": "small (0.5-1pt)",
    "medium": "medium (2-3pt)",
    "high": "large (5-8pt)",
}


def _pr_summary(pr: PullRequest, include_merged_at: bool = False) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "number": pr.number,
        "url": pr.url,
        "title": pr.title,
        "additions": pr.additions,
        "deletions": pr.deletions,
        "changedFiles": pr.changed_files,
    }
    if include_merged_at:
        summary["mergedAt"] = pr.merged_at
    return summary


def truncate_patch(patch: Optional[str]) -> Optional[str]:
    if not patch or len(patch) <= MAX_PATCH_LENGTH:
        return patch
    return patch[:MAX_PATCH_LENGTH] + TRUNCATION_MARKER


def classify_complexity(total_changes: int, file_count: int, module_count: int) -> str:
    """Heuristic PR complexity from line, file and module counts."""
    if total_changes > 500 or file_count > 10 or module_count > 3:
        return "high"
    if total_changes > 100 or file_count > 5 or module_count > 2:
        return "medium"
    return "low"


class EstimationToolkit:
    """Tool implementations bound to one ticket source and optional code host."""

    def __init__(self, ticket_source: TicketSource, code_host: Optional[CodeHost] = None):
        self.ticket_source = ticket_source
        self.code_host = code_host

    async def get_jira_ticket(self, ticket_key: str) -> Dict[str, Any]:
        """Fetch a Jira ticket with its summary, description, story points, status and type.

        Args:
            ticket_key: Jira ticket key, e.g. KT-1234
        """
        ticket = await self.ticket_source.get_issue(ticket_key)
        return {
            "key": ticket.key,
            "summary": ticket.summary,
            "description": (ticket.description or "")[:MAX_DESCRIPTION_LENGTH],
            "storyPoints": ticket.story_points,
            "status": ticket.status,
            "issueType": ticket.issue_type,
        }

    async def get_ticket_pull_requests(self, ticket_key: str) -> List[Dict[str, Any]]:
        """List GitHub pull requests linked to a Jira ticket with their size.

        Args:
            ticket_key: Jira ticket key, e.g. KT-1234
        """
        if self.code_host is None:
            return []

        urls = await self.ticket_source.get_dev_panel_links(ticket_key)
        if not urls:
            logger.info(f"No pull requests linked to {ticket_key}")
            return []

        prs = await self.code_host.get_pull_requests_from_urls(urls)
        logger.info(f"Found {len(prs)} pull requests linked to {ticket_key}")
        return [_pr_summary(pr) for pr in prs]

    async def get_pull_request_files(self, pr_url: str) -> Optional[Dict[str, Any]]:
        """List the files changed by a GitHub pull request with truncated diffs.

        Args:
            pr_url: Pull request URL, e.g. https://github.com/org/repo/pull/123
        """
        if self.code_host is None:
            return None

        match = re.search(GITHUB_PR_URL_PATTERN, pr_url or "")
        if not match:
            raise ValueError(f"Invalid PR URL: {pr_url}")

        owner, repo, number = match.group(1), match.group(2), int(match.group(3))
        details = await self.code_host.get_pull_request_with_files(owner, repo, number)
        pr = details.pull_request

        return {
            "prNumber": pr.number,
            "prTitle": pr.title,
            "totalAdditions": pr.additions,
            "totalDeletions": pr.deletions,
            "files": [
                {
                    "filename": f.filename,
                    "status": f.status,
                    "additions": f.additions,
                    "deletions": f.deletions,
                    "patch": truncate_patch(f.patch),
                }
                for f in details.files[:MAX_FILES]
            ],
        }

    async def analyze_code_changes(self, pr_url: str) -> Optional[Dict[str, Any]]:
        """Assess a pull request's complexity from its changed files, modules and code patterns.

        Args:
            pr_url: Pull request URL, e.g. https://github.com/org/repo/pull/123
        """
        files_result = await self.get_pull_request_files(pr_url)
        if files_result is None:
            return None

        file_types: Counter = Counter()
        modules: List[str] = []
        patterns: List[str] = []

        for f in files_result["files"]:
            ext = os.path.splitext(f["filename"])[1].lstrip(".") or "other"
            file_types[ext] += 1

            parts = f["filename"].split("/")
            if len(parts) > 1:
                candidates = [parts[0]]
                if len(parts) > 2:
                    candidates.append("/".join(parts[:2]))
                modules.extend(m for m in candidates if m not in modules)

            patch = f.get("patch") or ""
            for label, markers in CODE_PATTERNS:
                if label not in patterns and any(m in patch for m in markers):
                    patterns.append(label)

        total_changes = files_result["totalAdditions"] + files_result["totalDeletions"]
        file_count = len(files_result["files"])
        complexity = classify_complexity(total_changes, file_count, len(modules))

        return {
            "prNumber": files_result["prNumber"],
            "summary": (
                f"{file_count} files changed, +{files_result['totalAdditions']}"
                f"/-{files_result['totalDeletions']} lines"
            ),
            "complexity": complexity,
            "affectedModules": modules[:MAX_MODULES],
            "fileTypes": dict(file_types),
            "patterns": patterns[:MAX_PATTERNS],
            "estimatedEffort": EFFORT_BY_COMPLEXITY[complexity],
        }

    async def search_pull_requests(
        self, keywords: str, repo: Optional[str] = None
    ) -> Dict[str, Any]:
        """Search merged GitHub pull requests by keyword to find work similar to the ticket.

        Args:
            keywords: Search keywords, e.g. "CSV export"
            repo: Optional owner/name repository to restrict the search
        """
        query = f"{keywords} type:pr is:merged"
        if repo:
            query += f" repo:{repo}"

        if self.code_host is None:
            return {"query": query, "count": 0, "pullRequests": []}

        prs = await self.code_host.search_pull_requests(query)
        logger.info(f"search_pull_requests found {len(prs)} PRs for {query!r}")
        return {
            "query": query,
            "count": len(prs),
            "pullRequests": [
                _pr_summary(pr, include_merged_at=True) for pr in prs[:MAX_SEARCH_RESULTS]
            ],
        }

    async def list_recent_prs(self, repo: str, count: Optional[int] = None) -> Dict[str, Any]:
        """List recently merged pull requests of a repository to see current work trends.

        Args:
            repo: Repository as owner/name
            count: Number of PRs to fetch (default 20, max 50)
        """
        if self.code_host is None:
            return {"repo": repo, "count": 0, "pullRequests": []}

        owner, _, name = (repo or "").partition("/")
        if not owner or not name or "/" in name:
            raise ValueError(f"Invalid repo format: {repo}. Expected 'owner/repo'")

        limit = min(count or DEFAULT_RECENT_PRS, MAX_RECENT_PRS)
        prs = await self.code_host.list_recent_pull_requests(owner, name, limit)
        merged = [pr for pr in prs if pr.merged_at]
        logger.info(f"list_recent_prs found {len(merged)} merged PRs in {repo}")
        return {
            "repo": repo,
            "count": len(merged),
            "pullRequests": [_pr_summary(pr, include_merged_at=True) for pr in merged],
        }


ESTIMATION_TOOL_NAMES = (
    "get_jira_ticket",
    "get_ticket_pull_requests",
    "get_pull_request_files",
    "analyze_code_changes",
    "search_pull_requests",
    "list_recent_prs",
)


def create_estimation_registry(
    ticket_source: TicketSource, code_host: Optional[CodeHost] = None
) -> ToolRegistry:
    """Create a registry with the six estimation tools bound to the collaborators."""
    toolkit = EstimationToolkit(ticket_source, code_host)
    registry = ToolRegistry()
    for name in ESTIMATION_TOOL_NAMES:
        registry.register(getattr(toolkit, name))
    return registry


def describe_tools(registry: ToolRegistry) -> str:
    """Markdown list of tools and parameters for the tool-use prompt."""
    lines = []
    for schema in registry.get_tools():
        properties = schema["inputSchema"]["properties"]
        required = set(schema["inputSchema"]["required"])
        params = ", ".join(
            f"{name}{'' if name in required else '?'}: {prop['type']}"
            for name, prop in properties.items()
        )
        lines.append(f"- **{schema['name']}**({params}): {schema['description']}")
    return "\n".join(lines)
