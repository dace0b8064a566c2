"""Async Jira Cloud REST client."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from sprintpoint.utils.logger import get_logger

from .base import IntegrationError, Sprint, Ticket

logger = get_logger(__name__)

DEFAULT_STORY_POINT_FIELD = "customfield_10016"
SPRINT_ISSUE_LIMIT = 100
SPRINT_PAGE_SIZE = 50

# Block nodes that end a line when flattening Atlassian Document Format
_ADF_BLOCK_TYPES = {
    "paragraph",
    "heading",
    "bulletList",
    "orderedList",
    "listItem",
    "codeBlock",
}


def extract_text_from_adf(document: Any) -> str:
    """Flatten an Atlassian Document Format body into plain text.

    Plain strings pass through; anything that is not a ``doc`` node
    yields an empty string.
    """
    if not document:
        return ""
    if isinstance(document, str):
        return document
    if not isinstance(document, dict) or document.get("type") != "doc":
        return ""
    return _adf_nodes_text(document.get("content") or []).strip()


def _adf_nodes_text(nodes: List[Dict[str, Any]]) -> str:
    parts: List[str] = []
    for node in nodes:
        if node.get("text"):
            parts.append(node["text"])
        if isinstance(node.get("content"), list):
            parts.append(_adf_nodes_text(node["content"]))
        if node.get("type") in _ADF_BLOCK_TYPES:
            parts.append("\n")
    return "".join(parts)


class JiraClient:
    """Ticket source backed by the Jira Cloud REST and Agile APIs."""

    def __init__(
        self,
        host: str,
        email: str,
        api_token: str,
        story_point_field: str = DEFAULT_STORY_POINT_FIELD,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.story_point_field = story_point_field
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=f"https://{host}",
            auth=(email, api_token),
            headers={"Accept": "application/json"},
            timeout=timeout,
        )

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._client.get(path, params=params)
        if response.status_code >= 400:
            raise IntegrationError(
                f"Jira API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )
        return response.json()

    @property
    def _issue_fields(self) -> str:
        return (
            "summary,description,status,issuetype,created,resolutiondate,"
            f"{self.story_point_field}"
        )

    def _map_issue(self, issue: Dict[str, Any]) -> Ticket:
        fields = issue.get("fields") or {}
        return Ticket(
            key=issue["key"],
            summary=fields.get("summary") or "",
            description=extract_text_from_adf(fields.get("description")),
            story_points=fields.get(self.story_point_field),
            status=(fields.get("status") or {}).get("name", ""),
            issue_type=(fields.get("issuetype") or {}).get("name", ""),
            created=fields.get("created"),
            resolved=fields.get("resolutiondate"),
        )

    async def get_issue(self, key: str) -> Ticket:
        """Fetch one issue by key."""
        data = await self._get(
            f"/rest/api/3/issue/{key}", params={"fields": self._issue_fields}
        )
        return self._map_issue(data)

    async def get_dev_panel_links(self, key: str) -> List[str]:
        """
        Pull request URLs from the issue's development panel.

        The dev-status API is undocumented and not enabled on every site,
        so any failure yields an empty list.
        """
        try:
            issue = await self._get(f"/rest/api/3/issue/{key}", params={"fields": "id"})
            detail = await self._get(
                "/rest/dev-status/1.0/issue/detail",
                params={
                    "issueId": issue.get("id", key),
                    "applicationType": "GitHub",
                    "dataType": "pullrequest",
                },
            )
        except (IntegrationError, httpx.HTTPError, ValueError) as e:
            logger.debug(f"Dev panel unavailable for {key}: {e}")
            return []

        urls: List[str] = []
        for entry in detail.get("detail") or []:
            pull_requests = list(entry.get("pullRequests") or [])
            for repository in entry.get("repositories") or []:
                pull_requests.extend(repository.get("pullRequests") or [])
            for pr in pull_requests:
                url = pr.get("url")
                if url and url not in urls:
                    urls.append(url)
        return urls

    async def get_sprints(self, board_id: int, count: int) -> List[Dict[str, Any]]:
        """Closed sprints of a board, most recent first."""
        sprints: List[Dict[str, Any]] = []
        start_at = 0
        while True:
            data = await self._get(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={
                    "state": "closed",
                    "startAt": start_at,
                    "maxResults": SPRINT_PAGE_SIZE,
                },
            )
            page = data.get("values") or []
            sprints.extend(page)
            # Pages come oldest first, so the newest sprints are on the last page
            if not page or data.get("isLast", True):
                break
            start_at += len(page)
        sprints.sort(
            key=lambda s: s.get("completeDate") or s.get("endDate") or "", reverse=True
        )
        return sprints[:count]

    async def get_sprint_issues(self, sprint_id: int) -> List[Ticket]:
        data = await self._get(
            f"/rest/agile/1.0/sprint/{sprint_id}/issue",
            params={"fields": self._issue_fields, "maxResults": SPRINT_ISSUE_LIMIT},
        )
        return [self._map_issue(issue) for issue in data.get("issues") or []]

    async def get_sprints_with_tickets(self, board_id: int, count: int) -> List[Sprint]:
        """Most recent closed sprints with their tickets, fetched concurrently."""
        sprints = await self.get_sprints(board_id, count)
        issue_lists = await asyncio.gather(
            *(self.get_sprint_issues(sprint["id"]) for sprint in sprints)
        )
        logger.info(f"Loaded {len(sprints)} sprints for board {board_id}")
        return [
            Sprint(
                id=sprint["id"],
                name=sprint.get("name", ""),
                state=sprint.get("state", "closed"),
                start_date=sprint.get("startDate"),
                end_date=sprint.get("endDate"),
                complete_date=sprint.get("completeDate"),
                tickets=tickets,
            )
            for sprint, tickets in zip(sprints, issue_lists)
        ]

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
