"""Base provider interface shared by the Gemini, OpenAI and Claude adapters."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from sprintpoint.utils.logger import get_logger

logger = get_logger(__name__)


class StopReason(Enum):
    """Normalized reasons a model stopped generating."""

    end_of_turn = "end_of_turn"
    end_of_message = "end_of_message"
    out_of_tokens = "out_of_tokens"


@dataclass
class ToolCall:
    """A single tool invocation requested by the model."""

    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    # Provider-specific data that must be echoed back (e.g. Gemini thought signatures)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Outcome of executing one ToolCall.

    ``payload`` is ``{"result": ...}`` on success or ``{"error": "..."}``
    on failure; either way it is sent back to the model.
    """

    name: str
    call_id: Optional[str]
    payload: Dict[str, Any]

    @property
    def status(self) -> str:
        return "error" if "error" in self.payload else "success"


@dataclass
class ProviderMessage:
    """Message format for provider interactions.

    Roles: ``system``, ``user``, ``assistant`` (may hold ``tool_calls``)
    and ``tool`` (holds ``tool_results`` answering the previous assistant turn).
    """

    content: str
    role: str = "user"
    tool_calls: List[ToolCall] = field(default_factory=list)
    tool_results: List[ToolResult] = field(default_factory=list)


@dataclass
class ProviderResponse:
    """Response format from providers."""

    content: str
    model: str
    stop_reason: Optional[StopReason] = None
    usage: Optional[Dict[str, Any]] = None
    tool_calls: List[ToolCall] = field(default_factory=list)


class ProviderError(Exception):
    """Base exception for provider errors."""

    pass


class TemporaryServiceError(ProviderError):
    """Error indicating temporary service unavailability that should be retried.

    Carries ``status_code = 503`` so the error classifier treats it as a
    server fault.

    Attributes:
        suggested_delay: Provider-suggested retry delay in seconds
    """

    status_code = 503

    def __init__(self, message: str, suggested_delay: Optional[float] = None):
        super().__init__(message)
        self.suggested_delay = suggested_delay


class BaseProvider(ABC):
    """Abstract base class for AI providers.

    Adapters translate ProviderMessages and registry tool schemas into the
    provider's function-calling format and back. They do not retry: SDK
    errors propagate unchanged so the retry policy can classify them.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model_id = config.get("model_id", "default")
        self.temperature = float(config.get("temperature") or 0.0)

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider connection."""
        pass

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[ProviderMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """Generate chat completion with optional tool calls."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Cleanup provider resources."""
        pass

    def _convert_finish_reason_to_stop_reason(self, finish_reason: Any) -> StopReason:
        """Convert provider-specific finish reasons to standard stop reasons."""
        if finish_reason is None:
            return StopReason.end_of_turn

        reason_str = str(finish_reason).lower()
        # Gemini enums render as "FinishReason.STOP"
        reason_str = reason_str.rsplit(".", 1)[-1]

        if reason_str in ["stop", "eos", "end", "end_turn", "stop_sequence"]:
            return StopReason.end_of_turn
        elif reason_str in ["length", "max_tokens", "out_of_tokens"]:
            return StopReason.out_of_tokens
        elif reason_str in ["tool_calls", "function_call", "tool_use"]:
            return StopReason.end_of_message
        else:
            logger.debug(
                f"Unknown finish_reason: {finish_reason}, defaulting to end_of_turn"
            )
            return StopReason.end_of_turn
