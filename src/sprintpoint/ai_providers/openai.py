"""OpenAI provider adapter."""

import json
from typing import Any, Dict, List, Optional

try:
    from openai import AsyncOpenAI

    OPENAI_AVAILABLE = True
except ImportError:
    OPENAI_AVAILABLE = False

from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.tool_converter import (
    convert_tools_to_openai,
    parse_tool_arguments,
)

from .base import BaseProvider, ProviderMessage, ProviderResponse, ToolCall

logger = get_logger(__name__)


class OpenAIProvider(BaseProvider):
    """OpenAI provider adapter."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client: Optional[Any] = None

        if not OPENAI_AVAILABLE:
            raise ImportError("openai package not available")

    async def initialize(self) -> None:
        """Initialize OpenAI connection."""
        api_key = self.config.get("api_key")
        if not api_key:
            raise ValueError("OpenAI API key is not configured")

        self.client = AsyncOpenAI(api_key=api_key, base_url=self.config.get("base_url"))
        logger.info(f"Initialized OpenAI provider with model: {self.model_id}")

    async def chat_completion(
        self,
        messages: List[ProviderMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """Generate chat completion using OpenAI."""
        if not self.client:
            raise RuntimeError("Provider not initialized")

        request_params: Dict[str, Any] = {
            "model": self.model_id,
            "messages": self._build_openai_messages(messages),
            "temperature": self.temperature,
        }
        if tools:
            request_params["tools"] = convert_tools_to_openai(tools)
            request_params["tool_choice"] = "auto"

        response = await self.client.chat.completions.create(**request_params)

        choice = response.choices[0]
        tool_calls = [
            ToolCall(
                name=tc.function.name,
                arguments=parse_tool_arguments(tc.function.arguments),
                id=tc.id,
            )
            for tc in (choice.message.tool_calls or [])
        ]

        return ProviderResponse(
            content=(choice.message.content or "").strip(),
            model=response.model,
            stop_reason=self._convert_finish_reason_to_stop_reason(
                getattr(choice, "finish_reason", None)
            ),
            usage=self._extract_usage(response),
            tool_calls=tool_calls,
        )

    def _build_openai_messages(
        self, messages: List[ProviderMessage]
    ) -> List[Dict[str, Any]]:
        """Convert ProviderMessages to chat completion messages.

        A ``tool`` message expands into one ``role="tool"`` entry per result.
        """
        openai_messages: List[Dict[str, Any]] = []
        for msg in messages:
            if msg.role == "tool":
                for result in msg.tool_results:
                    openai_messages.append(
                        {
                            "role": "tool",
                            "tool_call_id": result.call_id,
                            "content": json.dumps(result.payload, default=str),
                        }
                    )
            elif msg.role == "assistant" and msg.tool_calls:
                openai_messages.append(
                    {
                        "role": "assistant",
                        "content": msg.content or None,
                        "tool_calls": [
                            {
                                "id": call.id,
                                "type": "function",
                                "function": {
                                    "name": call.name,
                                    "arguments": json.dumps(call.arguments),
                                },
                            }
                            for call in msg.tool_calls
                        ],
                    }
                )
            else:
                openai_messages.append({"role": msg.role, "content": msg.content})
        return openai_messages

    def _extract_usage(self, response) -> Dict[str, Any]:
        """Extract usage statistics from OpenAI response."""
        if getattr(response, "usage", None):
            return {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return {}

    async def shutdown(self) -> None:
        """Cleanup OpenAI resources."""
        if self.client is not None:
            await self.client.close()
        self.client = None
        logger.debug("OpenAI provider shutdown completed")
