"""Tool schema conversion for AI providers.

Registry tools are described as::

    {
        "name": "search_pull_requests",
        "description": "Search merged pull requests by keyword.",
        "inputSchema": {
            "type": "object",
            "properties": {"keywords": {"type": "string"}},
            "required": ["keywords"],
        },
    }

Each provider wants a slightly different envelope around the same JSON
Schema; one converter per provider keeps that detail out of the
orchestrator.
"""

import json
from typing import Any, Dict, Iterator, List, Tuple

from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)

EMPTY_SCHEMA: Dict[str, Any] = {"type": "object", "properties": {}, "required": []}

# JSON Schema keywords the Gemini function declaration API rejects
GEMINI_UNSUPPORTED_KEYS = {
    "additionalProperties",
    "default",
    "examples",
    "$schema",
    "definitions",
    "$ref",
    "$id",
    "title",
    "format",
    "pattern",
    "minimum",
    "maximum",
    "minLength",
    "maxLength",
    "minItems",
    "maxItems",
    "uniqueItems",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "const",
    "patternProperties",
    "dependencies",
    "if",
    "then",
    "else",
    "not",
    "contains",
}


def _iter_named_tools(
    tools: List[Dict[str, Any]], provider: str
) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
    """Yield (name, description, input schema) for each well-formed tool."""
    for tool in tools:
        name = tool.get("name")
        if not name:
            logger.warning(f"Skipping tool with no name for {provider}: {tool}")
            continue
        schema = tool.get("inputSchema") or dict(EMPTY_SCHEMA)
        yield name, tool.get("description", ""), schema


def convert_tools_to_openai(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert registry tools to OpenAI function calling format.

    Args:
        tools: Registry tool definitions

    Returns:
        List of ``{"type": "function", "function": {...}}`` entries
    """
    converted = [
        {
            "type": "function",
            "function": {
                "name": name,
                "description": description,
                "parameters": schema,
            },
        }
        for name, description, schema in _iter_named_tools(tools, "openai")
    ]
    logger.debug(f"Converted {len(converted)}/{len(tools)} tools to OpenAI format")
    return converted


def convert_tools_to_claude(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert registry tools to Claude tool format (``input_schema``)."""
    converted = [
        {"name": name, "description": description, "input_schema": schema}
        for name, description, schema in _iter_named_tools(tools, "claude")
    ]
    logger.debug(f"Converted {len(converted)}/{len(tools)} tools to Claude format")
    return converted


def _clean_schema_for_gemini(schema: Any) -> Any:
    """Recursively drop JSON Schema keywords Gemini does not accept.

    Only keywords are removed; property names under ``properties`` are
    kept even when they collide with a keyword (e.g. a ``title`` argument).
    """
    if not isinstance(schema, dict):
        return schema

    cleaned: Dict[str, Any] = {}
    for key, value in schema.items():
        if key in GEMINI_UNSUPPORTED_KEYS:
            continue
        if key == "properties" and isinstance(value, dict):
            cleaned[key] = {
                prop_name: _clean_schema_for_gemini(prop_schema)
                for prop_name, prop_schema in value.items()
            }
        elif isinstance(value, dict):
            cleaned[key] = _clean_schema_for_gemini(value)
        elif isinstance(value, list):
            cleaned[key] = [_clean_schema_for_gemini(item) for item in value]
        else:
            cleaned[key] = value
    return cleaned


def convert_tools_to_gemini(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Convert registry tools to Gemini function declarations.

    Returns:
        List of ``{"name", "description", "parameters"}`` declarations with
        unsupported schema keywords removed
    """
    converted = [
        {
            "name": name,
            "description": description,
            "parameters": _clean_schema_for_gemini(schema),
        }
        for name, description, schema in _iter_named_tools(tools, "gemini")
    ]
    logger.debug(f"Converted {len(converted)}/{len(tools)} tools to Gemini format")
    return converted


def parse_tool_arguments(raw: Any) -> Dict[str, Any]:
    """Decode tool call arguments that may arrive as a JSON string.

    Malformed or non-object arguments become an empty dict so the registry
    reports the missing parameters back to the model.
    """
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to decode tool arguments {raw!r}: {e}")
        return {}
    return decoded if isinstance(decoded, dict) else {}
