"""Tool registry for managing and executing tools.

Execution never raises: unknown tools, bad arguments and failures inside
a tool all come back as ``{"error": ...}`` payloads, which the
orchestrator feeds to the model as ordinary tool output.
"""

from typing import Any, Callable, Dict, List, Optional, Union

from sprintpoint.ai_providers.base import ToolResult
from sprintpoint.utils.logger import get_logger

from .decorator import Tool, tool

logger = get_logger(__name__)


def _coerce_argument(value: Any, json_type: str) -> Any:
    """Coerce loosely typed model arguments for integer/number parameters."""
    if isinstance(value, bool):
        return value
    if json_type == "integer":
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
    elif json_type == "number" and isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


class ToolRegistry:
    """Registry for model-callable tools.

    The registry provides:
    - Tool registration (decorated functions, bound methods or Tool instances)
    - Provider-neutral tool listing, sorted by name
    - Tool execution by name with argument validation
    """

    def __init__(self):
        self._tools: Dict[str, Tool] = {}

    def register(self, tool_or_func: Union[Tool, Callable], **kwargs) -> Tool:
        """Register a tool with the registry.

        Args:
            tool_or_func: Either a Tool instance or a callable to wrap.
            **kwargs: Passed to ``tool()`` when wrapping a callable.

        Returns:
            The registered Tool instance.
        """
        t = tool_or_func if isinstance(tool_or_func, Tool) else tool(tool_or_func, **kwargs)

        if t.name in self._tools:
            logger.warning(f"Overwriting existing tool: {t.name}")

        self._tools[t.name] = t
        logger.debug(f"Registered tool: {t.name}")
        return t

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def get_tools(self) -> List[Dict[str, Any]]:
        """Get all tool declarations, sorted by name for stable prompts."""
        return sorted(
            (t.to_schema() for t in self._tools.values()), key=lambda t: t["name"]
        )

    def list_tool_names(self) -> List[str]:
        return sorted(self._tools.keys())

    def _prepare_arguments(self, t: Tool, arguments: Dict[str, Any]) -> Dict[str, Any]:
        unknown = [key for key in arguments if key not in t.param_names]
        if unknown:
            logger.warning(f"Dropping undeclared arguments for {t.name}: {unknown}")

        prepared = {
            key: _coerce_argument(value, t.param_types[key])
            for key, value in arguments.items()
            if key in t.param_names
        }

        missing = [key for key in t.required if prepared.get(key) is None]
        if missing:
            raise ValueError(f"Missing required arguments: {', '.join(missing)}")
        return prepared

    async def call_tool(
        self,
        tool_name: str,
        arguments: Optional[Dict[str, Any]] = None,
        call_id: Optional[str] = None,
    ) -> ToolResult:
        """Execute a tool by name.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Arguments keyed by their exposed (camelCase) names.
            call_id: Provider call id echoed into the result.

        Returns:
            ToolResult whose payload is ``{"result": ...}`` or ``{"error": ...}``.
        """
        tool_instance = self._tools.get(tool_name)
        if not tool_instance:
            logger.error(f"Tool not found: {tool_name}")
            return ToolResult(
                name=tool_name,
                call_id=call_id,
                payload={"error": f"Unknown tool: {tool_name}"},
            )

        logger.info(f"Executing tool: {tool_name}")
        logger.debug(f"Arguments: {arguments}")

        try:
            prepared = self._prepare_arguments(tool_instance, arguments or {})
            result = await tool_instance.ainvoke(prepared)
        except Exception as e:
            logger.error(f"Tool execution failed: {tool_name}: {e}", exc_info=True)
            return ToolResult(name=tool_name, call_id=call_id, payload={"error": str(e)})

        logger.info(f"Tool {tool_name} executed successfully")
        return ToolResult(name=tool_name, call_id=call_id, payload={"result": result})

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={list(self._tools.keys())})"
