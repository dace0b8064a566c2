"""Unit tests for the Jira and GitHub clients."""

import httpx
import pytest

from sprintpoint.integrations.base import IntegrationError, days_between, parse_timestamp
from sprintpoint.integrations.github import GitHubClient
from sprintpoint.integrations.jira import JiraClient, extract_text_from_adf


def jira_client(handler):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://example.atlassian.net"
    )
    return JiraClient("example.atlassian.net", "dev@example.com", "token", client=client)


def github_client(handler):
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://api.github.com"
    )
    return GitHubClient("gh-token", client=client)


def issue_json(key, points=None, description=None):
    return {
        "id": "10001",
        "key": key,
        "fields": {
            "summary": f"Summary of {key}",
            "description": description,
            "status": {"name": "Done"},
            "issuetype": {"name": "Story"},
            "created": "2024-03-01T09:00:00.000+0900",
            "resolutiondate": "2024-03-03T21:00:00.000+0900",
            "customfield_10016": points,
        },
    }


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_parse_jira_offset(self):
        parsed = parse_timestamp("2024-03-01T09:00:00.000+0900")
        assert parsed.utcoffset().total_seconds() == 9 * 3600

    def test_parse_zulu(self):
        assert parse_timestamp("2024-03-01T00:00:00Z").utcoffset().total_seconds() == 0

    def test_days_between(self):
        assert days_between("2024-03-01T00:00:00Z", "2024-03-02T12:00:00Z") == 1.5
        assert days_between(None, "2024-03-02T12:00:00Z") is None
        assert days_between("garbage", "2024-03-02T12:00:00Z") is None


class TestAdf:
    """Tests for Atlassian Document Format flattening."""

    def test_plain_string_passes_through(self):
        assert extract_text_from_adf("plain") == "plain"

    def test_paragraphs(self):
        document = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "Same as KT-1"}]},
                {"type": "paragraph", "content": [{"type": "text", "text": "Add CSV"}]},
            ],
        }
        assert extract_text_from_adf(document) == "Same as KT-1\nAdd CSV"

    def test_non_doc(self):
        assert extract_text_from_adf({"type": "paragraph"}) == ""
        assert extract_text_from_adf(None) == ""


class TestJiraClient:
    """Tests for JiraClient."""

    @pytest.mark.asyncio
    async def test_get_issue(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=issue_json("KT-1", points=3, description="Text"))

        async with jira_client(handler) as jira:
            ticket = await jira.get_issue("KT-1")

        assert requests[0].url.path == "/rest/api/3/issue/KT-1"
        assert "customfield_10016" in requests[0].url.params["fields"]
        assert ticket.key == "KT-1"
        assert ticket.story_points == 3
        assert ticket.status == "Done"
        assert ticket.days_to_complete == 2.5

    @pytest.mark.asyncio
    async def test_http_error(self):
        def handler(request):
            return httpx.Response(404, text="Issue does not exist")

        async with jira_client(handler) as jira:
            with pytest.raises(IntegrationError) as exc_info:
                await jira.get_issue("KT-404")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_dev_panel_links_both_shapes(self):
        def handler(request):
            if request.url.path.startswith("/rest/api/3/issue/"):
                return httpx.Response(200, json={"id": "10001", "key": "KT-1"})
            assert request.url.params["issueId"] == "10001"
            return httpx.Response(
                200,
                json={
                    "detail": [
                        {"pullRequests": [{"url": "https://github.com/acme/app/pull/1"}]},
                        {
                            "repositories": [
                                {
                                    "pullRequests": [
                                        {"url": "https://github.com/acme/app/pull/2"},
                                        {"url": "https://github.com/acme/app/pull/1"},
                                    ]
                                }
                            ]
                        },
                    ]
                },
            )

        async with jira_client(handler) as jira:
            urls = await jira.get_dev_panel_links("KT-1")

        assert urls == [
            "https://github.com/acme/app/pull/1",
            "https://github.com/acme/app/pull/2",
        ]

    @pytest.mark.asyncio
    async def test_dev_panel_unavailable(self):
        def handler(request):
            if request.url.path.startswith("/rest/dev-status"):
                return httpx.Response(403, text="forbidden")
            return httpx.Response(200, json={"id": "10001"})

        async with jira_client(handler) as jira:
            assert await jira.get_dev_panel_links("KT-1") == []

    @pytest.mark.asyncio
    async def test_sprints_with_tickets_most_recent_first(self):
        def handler(request):
            path = request.url.path
            if path == "/rest/agile/1.0/board/5/sprint":
                assert request.url.params["state"] == "closed"
                return httpx.Response(
                    200,
                    json={
                        "values": [
                            {"id": 1, "name": "S1", "completeDate": "2024-01-14T00:00:00Z"},
                            {"id": 3, "name": "S3", "completeDate": "2024-02-11T00:00:00Z"},
                            {"id": 2, "name": "S2", "completeDate": "2024-01-28T00:00:00Z"},
                        ]
                    },
                )
            sprint_id = int(path.split("/")[-2])
            return httpx.Response(
                200, json={"issues": [issue_json(f"KT-{sprint_id}0", points=sprint_id)]}
            )

        async with jira_client(handler) as jira:
            sprints = await jira.get_sprints_with_tickets(5, 2)

        assert [s.name for s in sprints] == ["S3", "S2"]
        assert [s.tickets[0].key for s in sprints] == ["KT-30", "KT-20"]
        assert sprints[0].tickets[0].story_points == 3

    @pytest.mark.asyncio
    async def test_sprints_paged_to_the_newest(self):
        starts = []

        def handler(request):
            start_at = int(request.url.params["startAt"])
            starts.append(start_at)
            ids = range(start_at + 1, min(start_at + 50, 60) + 1)
            return httpx.Response(
                200,
                json={
                    "values": [
                        {
                            "id": n,
                            "name": f"S{n}",
                            "completeDate": f"2024-01-01T{n // 60:02d}:{n % 60:02d}:00Z",
                        }
                        for n in ids
                    ],
                    "isLast": start_at + 50 >= 60,
                },
            )

        async with jira_client(handler) as jira:
            sprints = await jira.get_sprints(5, 3)

        assert starts == [0, 50]
        assert [s["id"] for s in sprints] == [60, 59, 58]


class TestGitHubClient:
    """Tests for GitHubClient."""

    @staticmethod
    def pr_json(number, merged=True):
        return {
            "number": number,
            "html_url": f"https://github.com/acme/app/pull/{number}",
            "title": f"PR {number}",
            "state": "closed",
            "additions": 10 * number,
            "deletions": number,
            "changed_files": number,
            "commits": 2,
            "created_at": "2024-01-01T00:00:00Z",
            "merged_at": "2024-01-02T00:00:00Z" if merged else None,
            "user": {"login": "dev"},
        }

    @pytest.mark.asyncio
    async def test_pull_request_with_files(self):
        def handler(request):
            if request.url.path.endswith("/files"):
                return httpx.Response(
                    200,
                    json=[
                        {
                            "filename": "src/a.py",
                            "status": "added",
                            "additions": 5,
                            "deletions": 0,
                            "patch": "+x",
                        }
                    ],
                )
            return httpx.Response(200, json=self.pr_json(7))

        async with github_client(handler) as github:
            details = await github.get_pull_request_with_files("acme", "app", 7)

        assert details.pull_request.number == 7
        assert details.pull_request.state == "merged"
        assert details.pull_request.author == "dev"
        assert details.files[0].filename == "src/a.py"
        assert details.files[0].status == "added"

    @pytest.mark.asyncio
    async def test_search_fetches_details_and_skips_failures(self):
        def handler(request):
            path = request.url.path
            if path == "/search/issues":
                assert "is:merged" in request.url.params["q"]
                return httpx.Response(
                    200,
                    json={
                        "items": [
                            {"html_url": "https://github.com/acme/app/pull/1"},
                            {"html_url": "https://github.com/acme/app/pull/2"},
                            {"html_url": "https://github.com/acme/app/issues/3"},
                        ]
                    },
                )
            if path.endswith("/pulls/2"):
                return httpx.Response(500, text="boom")
            return httpx.Response(200, json=self.pr_json(1))

        async with github_client(handler) as github:
            prs = await github.search_pull_requests("export type:pr is:merged")

        assert [pr.number for pr in prs] == [1]
        assert prs[0].additions == 10

    @pytest.mark.asyncio
    async def test_list_recent(self):
        def handler(request):
            assert request.url.params["per_page"] == "20"
            listed = self.pr_json(4, merged=False)
            del listed["additions"]
            return httpx.Response(200, json=[listed])

        async with github_client(handler) as github:
            prs = await github.list_recent_pull_requests("acme", "app", 20)

        assert prs[0].merged_at is None
        assert prs[0].state == "closed"
        assert prs[0].additions == 0

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        github = GitHubClient("t", client=http)
        await github.close()
        assert not http.is_closed
        await http.aclose()
