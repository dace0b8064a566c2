"""Unit tests for estimation prompt assembly."""

import json

from sprintpoint.estimation.prompts import (
    DEFAULT_ESTIMATION_PROMPT,
    DEFAULT_TOOL_PROMPT,
    NO_DESCRIPTION,
    NO_REPOSITORIES,
    build_estimation_prompt,
    format_repositories,
)
from sprintpoint.execution.result_parser import extract_json_payload, normalize_result

SPRINT_DATA = [
    {"sprintName": "Sprint 2", "tickets": [{"key": "KT-1", "summary": "s", "storyPoints": 3}]}
]


def build(**overrides):
    arguments = {
        "ticket_key": "KT-100",
        "ticket_summary": "Add CSV export button",
        "ticket_description": "Export the report table",
        "sprint_data": SPRINT_DATA,
        "tool_docs": "- **get_jira_ticket**(ticketKey: string)",
    }
    arguments.update(overrides)
    return build_estimation_prompt(**arguments)


class TestTemplates:
    """Tests for the default templates."""

    def test_placeholders(self):
        for placeholder in ("{toolDocs}", "{targetTicketKey}", "{repositories}"):
            assert placeholder in DEFAULT_TOOL_PROMPT
        for placeholder in ("{sprintData}", "{ticketSummary}", "{ticketDescription}"):
            assert placeholder in DEFAULT_ESTIMATION_PROMPT

    def test_output_example_matches_result_shape(self):
        """The JSON example in the prompt normalizes without losing keys."""
        example = json.loads(extract_json_payload(DEFAULT_ESTIMATION_PROMPT))
        normalized = normalize_result(example).to_dict()
        for key in example:
            assert key in normalized
        for key in example["workTypeBreakdown"]:
            assert key in normalized["workTypeBreakdown"]
        for key in example["workloadFeatures"]:
            assert key in normalized["workloadFeatures"]


class TestBuildEstimationPrompt:
    """Tests for build_estimation_prompt."""

    def test_fills_every_placeholder(self):
        prompt = build(repositories=["acme/app", "acme/api"])

        assert "Ticket key: **KT-100**" in prompt
        assert "- **get_jira_ticket**(ticketKey: string)" in prompt
        assert "- acme/app\n- acme/api" in prompt
        assert "Add CSV export button" in prompt
        assert "Export the report table" in prompt
        assert json.dumps(SPRINT_DATA, indent=2) in prompt
        for placeholder in ("{toolDocs}", "{targetTicketKey}", "{sprintData}"):
            assert placeholder not in prompt

    def test_tool_instructions_come_first(self):
        prompt = build(related_context="\n=== Related tickets ===\n")
        assert prompt.index("## Tools (required)") < prompt.index("agile story point")
        assert prompt.endswith("\n=== Related tickets ===\n")

    def test_missing_description(self):
        assert NO_DESCRIPTION in build(ticket_description="")

    def test_custom_prompts_replace_defaults(self):
        prompt = build(
            custom_prompt="Estimate {ticketSummary} from {sprintData}",
            tool_prompt="Use {toolDocs} for {targetTicketKey}. ",
        )
        assert prompt.startswith("Use - **get_jira_ticket**(ticketKey: string) for KT-100. ")
        assert "Estimate Add CSV export button from [" in prompt
        assert "agile story point" not in prompt

    def test_format_repositories(self):
        assert format_repositories([]) == NO_REPOSITORIES
        assert format_repositories(None) == NO_REPOSITORIES
        assert format_repositories(["a/b"]) == "- a/b"
