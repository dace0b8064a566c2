"""Anthropic Claude provider adapter."""

import json
from typing import Any, Dict, List, Optional, Tuple

try:
    from anthropic import AsyncAnthropic

    ANTHROPIC_AVAILABLE = True
except ImportError:
    ANTHROPIC_AVAILABLE = False

from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.tool_converter import convert_tools_to_claude

from .base import BaseProvider, ProviderMessage, ProviderResponse, ToolCall

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 8192


class ClaudeProvider(BaseProvider):
    """Anthropic Claude provider adapter."""

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config)
        self.client: Optional[Any] = None

        if not ANTHROPIC_AVAILABLE:
            raise ImportError("anthropic package not available")

    async def initialize(self) -> None:
        """Initialize Anthropic connection."""
        api_key = self.config.get("api_key")
        if not api_key:
            raise ValueError("Anthropic API key is not configured")

        self.client = AsyncAnthropic(api_key=api_key)
        logger.info(f"Initialized Claude provider with model: {self.model_id}")

    async def chat_completion(
        self,
        messages: List[ProviderMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """Generate chat completion using Claude."""
        if not self.client:
            raise RuntimeError("Provider not initialized")

        claude_messages, system_message = self._build_claude_messages(messages)

        request_params: Dict[str, Any] = {
            "model": self.model_id,
            "messages": claude_messages,
            "max_tokens": int(self.config.get("max_tokens") or DEFAULT_MAX_TOKENS),
            "temperature": self.temperature,
        }
        if system_message:
            request_params["system"] = system_message
        if tools:
            claude_tools = convert_tools_to_claude(tools)
            if claude_tools:
                request_params["tools"] = claude_tools

        response = await self.client.messages.create(**request_params)

        text_parts: List[str] = []
        tool_calls: List[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(name=block.name, arguments=dict(block.input or {}), id=block.id)
                )

        return ProviderResponse(
            content="".join(text_parts).strip(),
            model=response.model,
            stop_reason=self._convert_finish_reason_to_stop_reason(response.stop_reason),
            usage=self._extract_usage(response),
            tool_calls=tool_calls,
        )

    def _build_claude_messages(
        self, messages: List[ProviderMessage]
    ) -> Tuple[List[Dict[str, Any]], Optional[str]]:
        """Convert ProviderMessages to Claude messages plus the system prompt."""
        claude_messages: List[Dict[str, Any]] = []
        system_parts: List[str] = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.content)
            elif msg.role == "assistant":
                blocks: List[Dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": call.arguments,
                        }
                    )
                if blocks:
                    claude_messages.append({"role": "assistant", "content": blocks})
            elif msg.role == "tool":
                claude_messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": result.call_id,
                                "content": json.dumps(result.payload, default=str),
                                "is_error": result.status == "error",
                            }
                            for result in msg.tool_results
                        ],
                    }
                )
            else:
                claude_messages.append({"role": "user", "content": msg.content})

        return claude_messages, "\n\n".join(system_parts) or None

    def _extract_usage(self, response) -> Dict[str, Any]:
        """Extract usage statistics from Claude response."""
        usage = getattr(response, "usage", None)
        if usage:
            return {
                "prompt_tokens": usage.input_tokens,
                "completion_tokens": usage.output_tokens,
                "total_tokens": usage.input_tokens + usage.output_tokens,
            }
        return {}

    async def shutdown(self) -> None:
        """Cleanup Claude resources."""
        if self.client is not None:
            await self.client.close()
        self.client = None
        logger.debug("Claude provider shutdown completed")
