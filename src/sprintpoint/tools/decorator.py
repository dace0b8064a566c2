"""Tool decorator for defining model-callable tools.

Builds a JSON Schema declaration from a function signature and its
Google-style docstring. Python parameters are written in snake_case but
exposed to the model in camelCase (``ticket_key`` becomes ``ticketKey``),
which is the naming the estimation prompts use.
"""

import inspect
import re
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Type, Union, get_type_hints

# Type mapping from Python types to JSON Schema types
TYPE_MAP: Dict[Type, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def to_camel_case(name: str) -> str:
    """``ticket_key`` -> ``ticketKey``; names without underscores are unchanged."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _get_json_type(python_type: Type) -> str:
    """Convert Python type to JSON Schema type."""
    origin = getattr(python_type, "__origin__", None)
    if origin is Union:
        # Optional[X] and other unions use the first non-None member
        for arg in python_type.__args__:
            if arg is not type(None):
                return _get_json_type(arg)
        return "string"
    if origin is not None:
        return TYPE_MAP.get(origin, "string")

    return TYPE_MAP.get(python_type, "string")


def _parse_docstring(docstring: str) -> Dict[str, Any]:
    """Parse a Google-style docstring into a description and arg descriptions."""
    if not docstring:
        return {"description": "", "args": {}}

    description_lines: List[str] = []
    arg_descriptions: Dict[str, str] = {}
    section = "description"
    current_arg: Optional[str] = None

    for line in docstring.strip().split("\n"):
        stripped = line.strip()
        lowered = stripped.lower()

        if lowered in ("args:", "arguments:", "parameters:"):
            section = "args"
            continue
        if lowered in ("returns:", "return:", "raises:", "examples:"):
            section = "other"
            continue

        if section == "description":
            description_lines.append(stripped)
        elif section == "args":
            arg_match = re.match(r"^(\w+)\s*:\s*(.*)$", stripped)
            if arg_match:
                current_arg = arg_match.group(1)
                arg_descriptions[current_arg] = arg_match.group(2)
            elif current_arg and stripped:
                arg_descriptions[current_arg] += " " + stripped

    description = re.sub(r"\s+", " ", " ".join(description_lines)).strip()
    return {
        "description": description,
        "args": {name: desc.strip() for name, desc in arg_descriptions.items()},
    }


class Tool:
    """Wrapper class for tool functions with JSON Schema metadata."""

    def __init__(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        self.func = func
        self.name = name or func.__name__

        parsed = _parse_docstring(func.__doc__ or "")
        self.description = description or parsed["description"] or f"Execute {self.name}"
        self.arg_descriptions = parsed["args"]

        # exposed (camelCase) name -> python parameter name
        self.param_names: Dict[str, str] = {}
        # exposed name -> JSON type
        self.param_types: Dict[str, str] = {}
        self.required: List[str] = []
        self.input_schema = self._generate_input_schema()

        wraps(func)(self)

    def _generate_input_schema(self) -> Dict[str, Any]:
        sig = inspect.signature(self.func)
        try:
            hints = get_type_hints(self.func)
        except Exception:
            hints = {}

        properties: Dict[str, Any] = {}
        for param_name, param in sig.parameters.items():
            if param_name in ("self", "cls") or param.kind in (
                inspect.Parameter.VAR_KEYWORD,
                inspect.Parameter.VAR_POSITIONAL,
            ):
                continue

            exposed = to_camel_case(param_name)
            json_type = _get_json_type(hints.get(param_name, str))
            prop: Dict[str, Any] = {"type": json_type}
            if param_name in self.arg_descriptions:
                prop["description"] = self.arg_descriptions[param_name]

            properties[exposed] = prop
            self.param_names[exposed] = param_name
            self.param_types[exposed] = json_type
            if param.default is inspect.Parameter.empty:
                self.required.append(exposed)

        return {"type": "object", "properties": properties, "required": list(self.required)}

    def __call__(self, *args, **kwargs) -> Any:
        """Execute the tool function."""
        return self.func(*args, **kwargs)

    async def ainvoke(self, arguments: Dict[str, Any]) -> Any:
        """Invoke with exposed (camelCase) argument names."""
        kwargs = {self.param_names[key]: value for key, value in arguments.items()}
        if inspect.iscoroutinefunction(self.func):
            return await self.func(**kwargs)
        return self.func(**kwargs)

    def to_schema(self) -> Dict[str, Any]:
        """Provider-neutral declaration: name, description and inputSchema."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    def __repr__(self) -> str:
        return f"Tool(name={self.name!r}, description={self.description[:50]!r}...)"


def tool(
    func: Optional[Callable] = None,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Callable:
    """Decorator to create a tool from a function.

    Can be used with or without arguments::

        @tool
        async def get_jira_ticket(ticket_key: str) -> dict:
            '''Fetch a ticket.'''

        @tool(name="custom_name", description="Custom description")
        def another_func(x: str) -> str:
            return x
    """

    def decorator(f: Callable) -> Tool:
        return Tool(f, name=name, description=description)

    if func is not None:
        return decorator(func)
    return decorator
