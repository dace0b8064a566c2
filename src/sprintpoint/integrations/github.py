"""Async GitHub REST client for pull request lookups."""

import asyncio
import re
from typing import Any, Dict, List, Optional

import httpx

from sprintpoint.utils.logger import get_logger

from .base import (
    GITHUB_PR_URL_PATTERN,
    FileDiff,
    IntegrationError,
    PullRequest,
    PullRequestWithFiles,
)

logger = get_logger(__name__)

GITHUB_API_URL = "https://api.github.com"
SEARCH_PAGE_SIZE = 20


class GitHubClient:
    """Code host backed by the GitHub REST API."""

    def __init__(
        self,
        token: str,
        client: Optional[httpx.AsyncClient] = None,
        base_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github.v3+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
        )

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._client.get(path, params=params)
        if response.status_code >= 400:
            raise IntegrationError(
                f"GitHub API error: {response.status_code} - {response.text[:500]}",
                status_code=response.status_code,
            )
        return response.json()

    @staticmethod
    def _map_pull_request(pr: Dict[str, Any]) -> PullRequest:
        merged_at = pr.get("merged_at")
        return PullRequest(
            number=pr["number"],
            url=pr.get("html_url", ""),
            title=pr.get("title", ""),
            state="merged" if merged_at else pr.get("state", ""),
            # List endpoints omit the size fields
            additions=pr.get("additions") or 0,
            deletions=pr.get("deletions") or 0,
            changed_files=pr.get("changed_files") or 0,
            commits=pr.get("commits") or 0,
            created_at=pr.get("created_at"),
            merged_at=merged_at,
            author=(pr.get("user") or {}).get("login"),
        )

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        data = await self._get(f"/repos/{owner}/{repo}/pulls/{number}")
        return self._map_pull_request(data)

    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> List[FileDiff]:
        data = await self._get(
            f"/repos/{owner}/{repo}/pulls/{number}/files", params={"per_page": 100}
        )
        return [
            FileDiff(
                filename=f["filename"],
                status=f.get("status", "modified"),
                additions=f.get("additions") or 0,
                deletions=f.get("deletions") or 0,
                patch=f.get("patch"),
            )
            for f in data
        ]

    async def get_pull_request_with_files(
        self, owner: str, repo: str, number: int
    ) -> PullRequestWithFiles:
        """Pull request details and its changed files, fetched concurrently."""
        pull_request, files = await asyncio.gather(
            self.get_pull_request(owner, repo, number),
            self.get_pull_request_files(owner, repo, number),
        )
        return PullRequestWithFiles(pull_request=pull_request, files=files)

    async def _details_for_urls(self, urls: List[str]) -> List[PullRequest]:
        targets = []
        for url in urls:
            match = re.search(GITHUB_PR_URL_PATTERN, url)
            if match:
                targets.append((match.group(1), match.group(2), int(match.group(3))))

        results = await asyncio.gather(
            *(self.get_pull_request(*target) for target in targets),
            return_exceptions=True,
        )

        pull_requests = []
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch PR {target}: {result}")
                continue
            pull_requests.append(result)
        return pull_requests

    async def get_pull_requests_from_urls(self, urls: List[str]) -> List[PullRequest]:
        """Details for each GitHub PR URL; unparsable or failing URLs are skipped."""
        return await self._details_for_urls(urls)

    async def search_pull_requests(self, query: str) -> List[PullRequest]:
        """Issue search restricted to PRs, then full details for each hit."""
        data = await self._get(
            "/search/issues", params={"q": query, "per_page": SEARCH_PAGE_SIZE}
        )
        urls = [item.get("html_url", "") for item in data.get("items") or []]
        return await self._details_for_urls(urls)

    async def list_recent_pull_requests(
        self, owner: str, repo: str, limit: int
    ) -> List[PullRequest]:
        """Recently updated closed pull requests of one repository."""
        data = await self._get(
            f"/repos/{owner}/{repo}/pulls",
            params={
                "state": "closed",
                "per_page": limit,
                "sort": "updated",
                "direction": "desc",
            },
        )
        return [self._map_pull_request(pr) for pr in data]

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
