"""Unit tests for the AI provider adapters and factory."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from sprintpoint.ai_providers.base import (
    ProviderMessage,
    StopReason,
    TemporaryServiceError,
    ToolCall,
    ToolResult,
)
from sprintpoint.ai_providers.claude import ClaudeProvider
from sprintpoint.ai_providers.factory import (
    create_provider,
    get_default_model,
    provider_for_model,
)
from sprintpoint.ai_providers.gemini import GeminiProvider
from sprintpoint.ai_providers.openai import OpenAIProvider

TOOLS = [
    {
        "name": "get_jira_ticket",
        "description": "Fetch a Jira ticket",
        "inputSchema": {
            "type": "object",
            "properties": {"ticketKey": {"type": "string"}},
            "required": ["ticketKey"],
        },
    }
]


def conversation():
    """Prompt, one tool round trip and a follow-up turn."""
    return [
        ProviderMessage(content="Be precise", role="system"),
        ProviderMessage(content="Estimate KT-100", role="user"),
        ProviderMessage(
            content="",
            role="assistant",
            tool_calls=[
                ToolCall(
                    name="get_jira_ticket",
                    arguments={"ticketKey": "KT-1"},
                    id="call_0",
                    extra={"thought_signature": b"sig"},
                )
            ],
        ),
        ProviderMessage(
            content="",
            role="tool",
            tool_results=[
                ToolResult(name="get_jira_ticket", call_id="call_0", payload={"error": "nope"})
            ],
        ),
    ]


class TestFactory:
    """Tests for provider selection."""

    @pytest.mark.parametrize(
        "model,provider",
        [
            ("gemini-2.5-flash", "gemini"),
            ("claude-sonnet-4-5", "claude"),
            ("gpt-4o", "openai"),
            ("o3-mini", "openai"),
            ("GPT-4.1", "openai"),
            ("mistral-large", "gemini"),
            ("", "gemini"),
        ],
    )
    def test_provider_for_model(self, model, provider):
        assert provider_for_model(model) == provider

    def test_default_models(self):
        assert get_default_model("openai") == "gpt-4o"
        assert get_default_model("unknown") == "gemini-2.5-flash"

    def test_create_provider(self):
        assert isinstance(create_provider("gemini", {}), GeminiProvider)
        assert isinstance(create_provider("openai", {}), OpenAIProvider)
        assert isinstance(create_provider("anthropic", {}), ClaudeProvider)
        assert isinstance(create_provider("other", {}), GeminiProvider)

    def test_temperature_from_config(self):
        provider = create_provider("openai", {"model_id": "gpt-4o", "temperature": 0.3})
        assert provider.model_id == "gpt-4o"
        assert provider.temperature == 0.3

    def test_finish_reason_mapping(self):
        provider = create_provider("gemini", {})
        convert = provider._convert_finish_reason_to_stop_reason
        assert convert("FinishReason.STOP") is StopReason.end_of_turn
        assert convert("length") is StopReason.out_of_tokens
        assert convert("tool_calls") is StopReason.end_of_message
        assert convert(None) is StopReason.end_of_turn


class TestGeminiProvider:
    """Tests for the Gemini adapter."""

    @pytest.fixture
    def provider(self):
        provider = GeminiProvider({"api_key": "key", "model_id": "gemini-2.5-flash"})
        provider.client = Mock()
        provider.client.aio.models.generate_content = AsyncMock()
        return provider

    def test_build_contents(self, provider):
        contents = provider._build_gemini_contents(conversation())

        assert contents[0] == {"role": "user", "parts": [{"text": "System: Be precise"}]}
        assert contents[1] == {"role": "user", "parts": [{"text": "Estimate KT-100"}]}
        assert contents[2] == {
            "role": "model",
            "parts": [
                {
                    "function_call": {"name": "get_jira_ticket", "args": {"ticketKey": "KT-1"}},
                    "thought_signature": b"sig",
                }
            ],
        }
        assert contents[3] == {
            "role": "user",
            "parts": [
                {"function_response": {"name": "get_jira_ticket", "response": {"error": "nope"}}}
            ],
        }

    @pytest.mark.asyncio
    async def test_chat_completion_extracts_calls_and_text(self, provider):
        parts = [
            SimpleNamespace(function_call=None, thought=True, text="thinking..."),
            SimpleNamespace(function_call=None, thought=False, text=" Looking it up. "),
            SimpleNamespace(
                function_call=SimpleNamespace(
                    name="get_jira_ticket", args={"ticketKey": "KT-1"}, id=None
                ),
                thought_signature=b"sig",
            ),
        ]
        provider.client.aio.models.generate_content.return_value = SimpleNamespace(
            candidates=[
                SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason="STOP")
            ],
            usage_metadata=SimpleNamespace(
                prompt_token_count=10, candidates_token_count=5, total_token_count=15
            ),
        )

        result = await provider.chat_completion(conversation()[1:2], TOOLS)

        assert result.content == "Looking it up."
        assert len(result.tool_calls) == 1
        tool_call = result.tool_calls[0]
        assert tool_call.name == "get_jira_ticket"
        assert tool_call.arguments == {"ticketKey": "KT-1"}
        assert tool_call.id == "call_0"
        assert tool_call.extra == {"thought_signature": b"sig"}
        assert result.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}

        kwargs = provider.client.aio.models.generate_content.await_args.kwargs
        declarations = kwargs["config"]["tools"][0]["function_declarations"]
        assert declarations[0]["name"] == "get_jira_ticket"

    @pytest.mark.asyncio
    async def test_no_candidates_is_temporary(self, provider):
        provider.client.aio.models.generate_content.return_value = SimpleNamespace(
            candidates=[]
        )
        with pytest.raises(TemporaryServiceError):
            await provider.chat_completion(conversation()[1:2])

    @pytest.mark.asyncio
    async def test_sdk_errors_propagate(self, provider):
        provider.client.aio.models.generate_content.side_effect = RuntimeError("429")
        with pytest.raises(RuntimeError, match="429"):
            await provider.chat_completion(conversation()[1:2])

    @pytest.mark.asyncio
    async def test_requires_initialize(self):
        provider = GeminiProvider({"api_key": "key"})
        with pytest.raises(RuntimeError, match="not initialized"):
            await provider.chat_completion([])

    @pytest.mark.asyncio
    async def test_initialize_requires_key(self):
        with pytest.raises(ValueError, match="API key"):
            await GeminiProvider({}).initialize()


class TestOpenAIProvider:
    """Tests for the OpenAI adapter."""

    def test_build_messages(self):
        provider = OpenAIProvider({"model_id": "gpt-4o"})
        messages = provider._build_openai_messages(conversation())

        assert messages[0] == {"role": "system", "content": "Be precise"}
        assert messages[2]["tool_calls"][0]["function"] == {
            "name": "get_jira_ticket",
            "arguments": '{"ticketKey": "KT-1"}',
        }
        assert messages[3] == {
            "role": "tool",
            "tool_call_id": "call_0",
            "content": '{"error": "nope"}',
        }

    @pytest.mark.asyncio
    async def test_chat_completion(self):
        provider = OpenAIProvider({"model_id": "gpt-4o"})
        provider.client = Mock()
        message = SimpleNamespace(
            content=None,
            tool_calls=[
                SimpleNamespace(
                    id="tc_1",
                    function=SimpleNamespace(
                        name="get_jira_ticket", arguments='{"ticketKey": "KT-2"}'
                    ),
                )
            ],
        )
        provider.client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                model="gpt-4o",
                choices=[SimpleNamespace(message=message, finish_reason="tool_calls")],
                usage=None,
            )
        )

        result = await provider.chat_completion(conversation()[:2], TOOLS)

        assert result.content == ""
        assert result.tool_calls[0].arguments == {"ticketKey": "KT-2"}
        assert result.tool_calls[0].id == "tc_1"
        assert result.stop_reason is StopReason.end_of_message
        kwargs = provider.client.chat.completions.create.await_args.kwargs
        assert kwargs["tool_choice"] == "auto"
        assert kwargs["tools"][0]["function"]["name"] == "get_jira_ticket"


class TestClaudeProvider:
    """Tests for the Claude adapter."""

    def test_build_messages(self):
        provider = ClaudeProvider({"model_id": "claude-sonnet-4-5"})
        messages, system = provider._build_claude_messages(conversation())

        assert system == "Be precise"
        assert messages[0] == {"role": "user", "content": "Estimate KT-100"}
        assert messages[1]["content"][0]["type"] == "tool_use"
        tool_result = messages[2]["content"][0]
        assert tool_result["tool_use_id"] == "call_0"
        assert tool_result["is_error"] is True

    @pytest.mark.asyncio
    async def test_chat_completion(self):
        provider = ClaudeProvider({"model_id": "claude-sonnet-4-5"})
        provider.client = Mock()
        provider.client.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                model="claude-sonnet-4-5",
                stop_reason="tool_use",
                usage=SimpleNamespace(input_tokens=3, output_tokens=4),
                content=[
                    SimpleNamespace(type="text", text="Checking. "),
                    SimpleNamespace(
                        type="tool_use",
                        id="tu_1",
                        name="get_jira_ticket",
                        input={"ticketKey": "KT-3"},
                    ),
                ],
            )
        )

        result = await provider.chat_completion(conversation(), TOOLS)

        assert result.content == "Checking."
        assert result.tool_calls[0].id == "tu_1"
        assert result.usage["total_tokens"] == 7
        kwargs = provider.client.messages.create.await_args.kwargs
        assert kwargs["system"] == "Be precise"
        assert kwargs["tools"][0]["input_schema"]["required"] == ["ticketKey"]
