"""Unit tests for sprint compaction and related-ticket context."""

import pytest
from conftest import FakeCodeHost, FakeTicketSource, make_pull_request

from sprintpoint.estimation.context import (
    RelatedTicketContext,
    RelatedTicketReference,
    compact_sprint_data,
    count_tickets,
    extract_key_changes,
    extract_related_ticket_keys,
    find_parent_reference,
    format_related_context,
    gather_related_ticket_context,
    parse_related_ticket_references,
    summarize_files,
)
from sprintpoint.integrations.base import FileDiff, Sprint, Ticket


def sprint(name, count, points=2):
    return Sprint(
        id=hash(name) % 1000,
        name=name,
        tickets=[
            Ticket(key=f"{name}-{i}", summary=f"Ticket {i}", story_points=points)
            for i in range(count)
        ],
    )


class TestCompactSprintData:
    """Tests for compact_sprint_data."""

    def test_keeps_pointed_tickets_only(self, sprints):
        data = compact_sprint_data(sprints)

        assert [s["sprintName"] for s in data] == ["Sprint 2", "Sprint 1"]
        assert [t["key"] for t in data[0]["tickets"]] == ["KT-1"]
        assert data[1]["tickets"][0] == {
            "key": "KT-3",
            "summary": "New billing API",
            "storyPoints": 8,
            "description": "Design and implement",
            "daysToComplete": 4.0,
        }

    def test_excludes_target_ticket(self, sprints):
        data = compact_sprint_data(sprints, exclude_key="KT-1")
        assert data[0]["tickets"] == []

    def test_cap_is_spread_with_extra_slots_first(self):
        sprints = [sprint("A", 50), sprint("B", 50), sprint("C", 50)]
        data = compact_sprint_data(sprints, max_tickets=100)

        assert [len(s["tickets"]) for s in data] == [34, 33, 33]
        assert count_tickets(data) == 100

    def test_short_sprints_do_not_donate_slots(self):
        data = compact_sprint_data([sprint("A", 2), sprint("B", 80)], max_tickets=10)
        assert [len(s["tickets"]) for s in data] == [2, 5]

    def test_long_descriptions_are_trimmed(self):
        long = Sprint(
            id=1,
            name="S",
            tickets=[Ticket(key="KT-9", summary="s", description="d" * 900, story_points=1)],
        )
        entry = compact_sprint_data([long])[0]["tickets"][0]
        assert len(entry["description"]) == 500

    def test_zero_and_missing_points_are_dropped(self):
        data = compact_sprint_data([sprint("A", 3, points=0)])
        assert data[0]["tickets"] == []

    def test_no_sprints(self):
        assert compact_sprint_data([]) == []


class TestRelatedTicketReferences:
    """Tests for extracting referenced tickets."""

    def test_extract_keys_with_project(self):
        description = "Same as kt-12, see KT-13 and KT-12 again. Not OTHER-1. Self: KT-100"
        assert extract_related_ticket_keys(description, "KT-100", "KT") == ["KT-12", "KT-13"]

    def test_extract_keys_without_project(self):
        description = "Blocked by API-7; related to WEB-3"
        assert extract_related_ticket_keys(description, "KT-1") == ["API-7", "WEB-3"]

    def test_keys_adjacent_to_japanese_text(self):
        description = "KT-5の子チケット。API-7と同様"
        assert extract_related_ticket_keys(description, "KT-1", "KT") == ["KT-5"]
        assert extract_related_ticket_keys(description, "KT-1") == ["KT-5", "API-7"]

    def test_keys_inside_identifiers_are_ignored(self):
        assert extract_related_ticket_keys("XKT-5 and KT-6a", "KT-1", "KT") == []

    def test_empty_description(self):
        assert extract_related_ticket_keys("", "KT-1") == []

    def test_relationships(self):
        description = (
            "This is the same as KT-1.\n"
            "Depends on KT-2 being released.\n"
            "See KT-3 for the design.\n"
            "Also KT-4."
        )
        references = parse_related_ticket_references(description, "KT-100", "KT")
        assert [(r.key, r.relationship) for r in references] == [
            ("KT-1", "similar"),
            ("KT-2", "dependency"),
            ("KT-3", "related"),
            ("KT-4", "unknown"),
        ]
        assert references[0].context == "This is the same as KT-1."

    def test_japanese_markers(self):
        references = parse_related_ticket_references("KT-5の親チケット", "KT-100", "KT")
        assert references[0].relationship == "parent"

    def test_find_parent_priority(self):
        references = [
            RelatedTicketReference("KT-1", "related"),
            RelatedTicketReference("KT-2", "similar"),
            RelatedTicketReference("KT-3", "parent"),
        ]
        assert find_parent_reference(references).key == "KT-3"
        assert find_parent_reference(references[:2]).key == "KT-2"
        assert find_parent_reference([RelatedTicketReference("KT-9")]).key == "KT-9"
        assert find_parent_reference([]) is None


class TestFileSummaries:
    """Tests for summarize_files and extract_key_changes."""

    def test_summarize_files(self):
        files = [
            FileDiff(filename="src/api/a.py"),
            FileDiff(filename="src/api/b.py"),
            FileDiff(filename="README.md"),
        ]
        assert summarize_files(files) == (
            "directories: [src/api: 2, (root): 1], extensions: [.py: 2, .md: 1]"
        )

    def test_key_changes_prefer_source_then_size(self):
        files = [
            FileDiff(filename="docs/guide.md", additions=500),
            FileDiff(filename="src/small.ts", additions=3),
            FileDiff(filename="src/big.py", additions=90, patch="p" * 800),
        ]
        changes = extract_key_changes(files)
        assert [c.filename for c in changes] == ["src/big.py", "src/small.ts", "docs/guide.md"]
        assert changes[0].patch.endswith("(truncated)")


class TestGatherRelatedTicketContext:
    """Tests for gather_related_ticket_context and its prompt rendering."""

    @pytest.fixture
    def ticket_source(self):
        return FakeTicketSource(
            tickets={
                "KT-1": Ticket(key="KT-1", summary="PDF export", story_points=3),
                "KT-2": Ticket(key="KT-2", summary="Export settings", story_points=None),
            },
            dev_links={
                "KT-1": [
                    "https://github.com/acme/app/pull/10",
                    "https://github.com/acme/app/pull/11",
                    "https://jira.example.com/not-a-pr",
                ]
            },
        )

    @pytest.fixture
    def code_host(self):
        files = [FileDiff(filename="src/export/pdf.py", additions=40, patch="+render()")]
        return FakeCodeHost(
            pull_requests={
                ("acme", "app", 10): make_pull_request(
                    10, files=files, title="PDF export", additions=40, changed_files=1
                )
            }
        )

    @pytest.mark.asyncio
    async def test_parent_with_pull_requests(self, ticket_source, code_host):
        context = await gather_related_ticket_context(
            "KT-100",
            "Same as KT-1, see also KT-2 and KT-404",
            ticket_source,
            code_host,
        )

        assert context.parent.key == "KT-1"
        assert context.parent.relationship == "similar"
        # PR 11 fails to load and is skipped
        assert [pr.number for pr in context.parent.pull_requests] == [10]
        assert [info.key for info in context.related] == ["KT-2"]

        text = format_related_context(context)
        assert "=== Related tickets ===" in text
        assert "## Referenced ticket: KT-1" in text
        assert "Story points: 3pt" in text
        assert "PR #10: PDF export" in text
        assert "- src/export/pdf.py (modified: +40/-0)" in text
        assert "- KT-2: Export settings (unset)" in text
        assert text.rstrip().endswith("=== End of related tickets ===")

    @pytest.mark.asyncio
    async def test_without_code_host(self, ticket_source):
        context = await gather_related_ticket_context("KT-100", "Based on KT-1", ticket_source)
        assert context.parent.key == "KT-1"
        assert context.parent.pull_requests == []

    @pytest.mark.asyncio
    async def test_no_references(self, ticket_source):
        context = await gather_related_ticket_context("KT-100", "Fresh work", ticket_source)
        assert context.empty
        assert format_related_context(context) == ""

    @pytest.mark.asyncio
    async def test_related_cap(self, ticket_source):
        ticket_source.tickets.update(
            {f"KT-{n}": Ticket(key=f"KT-{n}", summary=f"T{n}") for n in range(3, 9)}
        )
        description = " ".join(f"KT-{n}" for n in range(1, 9))
        context = await gather_related_ticket_context(
            "KT-100", description, ticket_source, max_related=3
        )
        assert context.parent.key == "KT-1"
        assert len(context.related) <= 3

    def test_empty_context(self):
        assert RelatedTicketContext().empty
