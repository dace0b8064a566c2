"""Provider factory: pick an adapter from the model id."""

from typing import Any, Dict

from sprintpoint.utils.logger import get_logger

from .base import BaseProvider
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .openai import OpenAIProvider

logger = get_logger(__name__)

# Default AI provider
DEFAULT_AI_PROVIDER = "gemini"

# Default model mappings for each provider
DEFAULT_MODELS = {
    DEFAULT_AI_PROVIDER: "gemini-2.5-flash",
    "openai": "gpt-4o",
    "claude": "claude-sonnet-4-5",
}

DEFAULT_MODEL_ID = DEFAULT_MODELS[DEFAULT_AI_PROVIDER]

_OPENAI_PREFIXES = ("gpt", "o1", "o3", "o4", "chatgpt")


def get_default_model(provider: str) -> str:
    """Get the default model for a given AI provider."""
    return DEFAULT_MODELS.get(provider.lower(), DEFAULT_MODEL_ID)


def provider_for_model(model_id: str) -> str:
    """
    Map a model id to its provider name.

    ``gemini-*`` goes to Gemini, ``claude-*`` to Claude and ``gpt-*`` or
    the ``o1``/``o3``/``o4`` reasoning families to OpenAI. Anything else
    falls back to Gemini.
    """
    model = (model_id or "").strip().lower()
    if model.startswith("gemini"):
        return "gemini"
    if model.startswith("claude") or model.startswith("anthropic"):
        return "claude"
    if model.startswith(_OPENAI_PREFIXES) or model.startswith("openai"):
        return "openai"
    if model:
        logger.warning(
            f"Unknown model '{model_id}', falling back to {DEFAULT_AI_PROVIDER}"
        )
    return DEFAULT_AI_PROVIDER


def create_provider(provider_name: str, config: Dict[str, Any]) -> BaseProvider:
    """Create provider instance based on provider name and config."""
    provider_name = provider_name.lower()

    if provider_name == DEFAULT_AI_PROVIDER:
        return GeminiProvider(config)
    elif provider_name == "openai":
        return OpenAIProvider(config)
    elif provider_name in ("claude", "anthropic"):
        return ClaudeProvider(config)
    else:
        logger.warning(
            f"Unknown provider '{provider_name}', falling back to {DEFAULT_AI_PROVIDER}"
        )
        return GeminiProvider(config)
