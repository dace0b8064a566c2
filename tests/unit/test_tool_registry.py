"""Unit tests for the tool decorator and registry."""

from typing import List, Optional

import pytest

from sprintpoint.tools import Tool, ToolRegistry, tool
from sprintpoint.tools.decorator import to_camel_case


@tool
async def lookup_ticket(ticket_key: str, include_links: bool = False) -> dict:
    """Look up a ticket by key.

    Args:
        ticket_key: Jira ticket key, e.g. KT-1234
        include_links: Also return linked
            pull requests
    """
    return {"key": ticket_key, "links": include_links}


@tool(name="count_items", description="Count things")
def count(limit: int, ratio: Optional[float] = None, labels: List[str] = None) -> int:
    return limit


@tool
async def explode(reason: str) -> None:
    """Always fails."""
    raise RuntimeError(f"boom: {reason}")


class TestToolDecorator:
    """Tests for schema generation."""

    def test_camel_case(self):
        assert to_camel_case("ticket_key") == "ticketKey"
        assert to_camel_case("pr_url") == "prUrl"
        assert to_camel_case("repo") == "repo"

    def test_schema_from_signature_and_docstring(self):
        assert isinstance(lookup_ticket, Tool)
        schema = lookup_ticket.to_schema()

        assert schema["name"] == "lookup_ticket"
        assert schema["description"] == "Look up a ticket by key."
        properties = schema["inputSchema"]["properties"]
        assert properties["ticketKey"] == {
            "type": "string",
            "description": "Jira ticket key, e.g. KT-1234",
        }
        assert properties["includeLinks"]["type"] == "boolean"
        assert properties["includeLinks"]["description"] == "Also return linked pull requests"
        assert schema["inputSchema"]["required"] == ["ticketKey"]

    def test_explicit_name_and_types(self):
        schema = count.to_schema()
        assert schema["name"] == "count_items"
        assert schema["description"] == "Count things"
        properties = schema["inputSchema"]["properties"]
        assert properties["limit"]["type"] == "integer"
        assert properties["ratio"]["type"] == "number"
        assert properties["labels"]["type"] == "array"
        assert schema["inputSchema"]["required"] == ["limit"]

    def test_decorated_function_stays_callable(self):
        assert count(4) == 4

    def test_bound_methods_skip_self(self):
        class Toolkit:
            async def fetch(self, pr_url: str) -> str:
                """Fetch a PR."""
                return pr_url

        t = Tool(Toolkit().fetch)
        assert list(t.input_schema["properties"]) == ["prUrl"]


class TestToolRegistry:
    """Tests for ToolRegistry."""

    @pytest.fixture
    def registry(self):
        registry = ToolRegistry()
        registry.register(lookup_ticket)
        registry.register(count)
        registry.register(explode)
        return registry

    def test_tools_are_sorted_by_name(self, registry):
        assert [t["name"] for t in registry.get_tools()] == [
            "count_items",
            "explode",
            "lookup_ticket",
        ]
        assert registry.list_tool_names() == ["count_items", "explode", "lookup_ticket"]
        assert len(registry) == 3
        assert "explode" in registry

    def test_register_plain_function(self):
        registry = ToolRegistry()

        def ping() -> str:
            """Reply pong."""
            return "pong"

        registered = registry.register(ping)
        assert registered.name == "ping"
        assert registry.get("ping") is registered

    @pytest.mark.asyncio
    async def test_call_tool_success(self, registry):
        result = await registry.call_tool(
            "lookup_ticket", {"ticketKey": "KT-1", "includeLinks": True}, "call_1"
        )
        assert result.status == "success"
        assert result.call_id == "call_1"
        assert result.payload == {"result": {"key": "KT-1", "links": True}}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        result = await registry.call_tool("delete_everything", {})
        assert result.status == "error"
        assert result.payload == {"error": "Unknown tool: delete_everything"}

    @pytest.mark.asyncio
    async def test_tool_exception_becomes_error_payload(self, registry):
        result = await registry.call_tool("explode", {"reason": "test"})
        assert result.status == "error"
        assert result.payload == {"error": "boom: test"}

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, registry):
        result = await registry.call_tool("lookup_ticket", {})
        assert result.payload == {"error": "Missing required arguments: ticketKey"}

    @pytest.mark.asyncio
    async def test_undeclared_arguments_are_dropped(self, registry):
        result = await registry.call_tool("lookup_ticket", {"ticketKey": "KT-2", "extra": 1})
        assert result.payload["result"]["key"] == "KT-2"

    @pytest.mark.asyncio
    async def test_numeric_arguments_are_coerced(self, registry):
        result = await registry.call_tool("count_items", {"limit": "7"})
        assert result.payload == {"result": 7}

        result = await registry.call_tool("count_items", {"limit": 3.0})
        assert result.payload == {"result": 3}
