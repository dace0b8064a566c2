"""AI provider adapters for Gemini, OpenAI and Claude."""

from .base import BaseProvider, ProviderMessage, ProviderResponse, ToolCall, ToolResult
from .factory import create_provider, provider_for_model

__all__ = [
    "BaseProvider",
    "ProviderMessage",
    "ProviderResponse",
    "ToolCall",
    "ToolResult",
    "create_provider",
    "provider_for_model",
]
