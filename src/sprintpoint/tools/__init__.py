"""Model-callable tools.

Example usage:
    from sprintpoint.tools import tool, ToolRegistry

    @tool
    async def get_jira_ticket(ticket_key: str) -> dict:
        '''Fetch a Jira ticket.

        Args:
            ticket_key: Jira ticket key, e.g. KT-1234
        '''

    registry = ToolRegistry()
    registry.register(get_jira_ticket)
    registry.get_tools()  # [{"name", "description", "inputSchema"}], ticketKey exposed

Estimation tools:
    from sprintpoint.tools import create_estimation_registry

    registry = create_estimation_registry(jira_client, github_client)
"""

from .decorator import Tool, tool
from .estimation_tools import (
    ESTIMATION_TOOL_NAMES,
    EstimationToolkit,
    create_estimation_registry,
    describe_tools,
)
from .registry import ToolRegistry

__all__ = [
    # Core
    "tool",
    "Tool",
    "ToolRegistry",
    # Estimation tools
    "ESTIMATION_TOOL_NAMES",
    "EstimationToolkit",
    "create_estimation_registry",
    "describe_tools",
]
