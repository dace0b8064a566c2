"""Gemini provider adapter using the google.genai SDK."""

from typing import Any, Dict, List, Optional, Tuple

try:
    from google import genai

    GEMINI_AVAILABLE = True
except ImportError:
    GEMINI_AVAILABLE = False
    genai = None  # type: ignore[assignment]

from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.tool_converter import convert_tools_to_gemini

from .base import (
    BaseProvider,
    ProviderMessage,
    ProviderResponse,
    TemporaryServiceError,
    ToolCall,
)

logger = get_logger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


class GeminiProvider(BaseProvider):
    """Gemini AI provider adapter with function calling."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client: Optional[Any] = None

        if not GEMINI_AVAILABLE:
            raise ImportError("google-genai package not available")

    @property
    def model_name(self) -> str:
        return self.config.get("model_id") or DEFAULT_GEMINI_MODEL

    async def initialize(self) -> None:
        """Initialize Gemini connection."""
        api_key = self.config.get("api_key")
        if not api_key:
            raise ValueError("Gemini API key is not configured")

        self.client = genai.Client(api_key=api_key)
        logger.info(
            f"Initialized Gemini provider with model: {self.model_name}, "
            f"temperature: {self.temperature}"
        )

    async def chat_completion(
        self,
        messages: List[ProviderMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """Generate a chat completion; SDK errors propagate to the retry policy."""
        if not self.client:
            raise RuntimeError("Provider not initialized")

        config_dict: Dict[str, Any] = {"temperature": self.temperature}
        if tools:
            declarations = convert_tools_to_gemini(tools)
            if declarations:
                config_dict["tools"] = [{"function_declarations": declarations}]

        response = await self.client.aio.models.generate_content(
            model=self.model_name,
            contents=self._build_gemini_contents(messages),
            config=config_dict,
        )

        if not getattr(response, "candidates", None):
            raise TemporaryServiceError("Gemini returned empty response (no candidates)")

        content, tool_calls = self._extract_content_and_tool_calls(response)
        if not content and not tool_calls:
            raise TemporaryServiceError(
                "Gemini returned response with no content in candidates"
            )

        finish_reason = getattr(response.candidates[0], "finish_reason", None)
        return ProviderResponse(
            content=content,
            model=self.model_name,
            stop_reason=self._convert_finish_reason_to_stop_reason(finish_reason),
            usage=self._extract_usage(response),
            tool_calls=tool_calls,
        )

    def _build_gemini_contents(
        self, messages: List[ProviderMessage]
    ) -> List[Dict[str, Any]]:
        """Convert ProviderMessages to Gemini content dicts."""
        contents: List[Dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                # Gemini has no system role in contents
                contents.append(
                    {"role": "user", "parts": [{"text": f"System: {msg.content}"}]}
                )
            elif msg.role == "assistant":
                parts: List[Dict[str, Any]] = []
                if msg.content:
                    parts.append({"text": msg.content})
                for call in msg.tool_calls:
                    part: Dict[str, Any] = {
                        "function_call": {"name": call.name, "args": call.arguments}
                    }
                    if call.extra.get("thought_signature"):
                        part["thought_signature"] = call.extra["thought_signature"]
                    parts.append(part)
                if parts:
                    contents.append({"role": "model", "parts": parts})
            elif msg.role == "tool":
                contents.append(
                    {
                        "role": "user",
                        "parts": [
                            {
                                "function_response": {
                                    "name": result.name,
                                    "response": result.payload,
                                }
                            }
                            for result in msg.tool_results
                        ],
                    }
                )
            else:
                contents.append({"role": "user", "parts": [{"text": msg.content}]})

        return contents

    def _extract_content_and_tool_calls(
        self, response: Any
    ) -> Tuple[str, List[ToolCall]]:
        """Extract text and function calls from the first candidate."""
        content_parts: List[str] = []
        tool_calls: List[ToolCall] = []

        candidate = response.candidates[0]
        parts = getattr(getattr(candidate, "content", None), "parts", None) or []

        for part in parts:
            function_call = getattr(part, "function_call", None)
            if function_call is not None:
                extra: Dict[str, Any] = {}
                signature = getattr(part, "thought_signature", None)
                if signature:
                    extra["thought_signature"] = signature
                tool_calls.append(
                    ToolCall(
                        name=getattr(function_call, "name", None) or "unknown_function",
                        arguments=dict(getattr(function_call, "args", None) or {}),
                        id=getattr(function_call, "id", None)
                        or f"call_{len(tool_calls)}",
                        extra=extra,
                    )
                )
            elif getattr(part, "thought", False):
                # Thinking summaries are not part of the answer
                continue
            elif getattr(part, "text", None):
                content_parts.append(part.text.strip())

        if tool_calls:
            logger.info(f"Gemini generated {len(tool_calls)} tool calls")

        return "\n".join(content_parts), tool_calls

    def _extract_usage(self, response: Any) -> Dict[str, Any]:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return {}
        return {
            "prompt_tokens": getattr(usage, "prompt_token_count", 0),
            "completion_tokens": getattr(usage, "candidates_token_count", 0),
            "total_tokens": getattr(usage, "total_token_count", 0),
        }

    async def shutdown(self) -> None:
        """Cleanup Gemini resources."""
        if self.client is not None:
            aio = getattr(self.client, "aio", None)
            aclose = getattr(aio, "aclose", None)
            if aclose is not None:
                await aclose()
        self.client = None
        logger.debug("Gemini provider shutdown")
