"""Tool-calling conversation loop.

The orchestrator sends the prompt, executes the tools the model asks for,
feeds the results back and repeats until the model stops calling tools or
a budget runs out. Three bounds apply: an iteration ceiling, a per-turn
tool call ceiling and a total tool call ceiling. Tool calls run one at a
time with a fixed delay between them to stay under provider rate limits.

Every model call goes through ``with_retry``; a non-retriable error
aborts the run. Tool failures never abort: they are returned to the model
as error payloads.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from sprintpoint.ai_providers.base import (
    BaseProvider,
    ProviderMessage,
    ProviderResponse,
    ToolResult,
)
from sprintpoint.execution.result_parser import has_json_payload
from sprintpoint.tools.registry import ToolRegistry
from sprintpoint.utils.logger import get_logger
from sprintpoint.utils.retry import RetryConfig, with_retry

logger = get_logger(__name__)

JSON_RECOVERY_PROMPT = (
    "Based on the tool results, output the estimation result as JSON. "
    "The JSON must be inside a code block that starts with ```json."
)


@dataclass
class ExecutionLimits:
    """Budgets for one orchestration run."""

    max_iterations: int = 10
    max_tool_calls_per_iteration: int = 5
    max_total_tool_calls: int = 12
    # Seconds between tool calls and before sending results back
    tool_call_delay: float = 1.0


def execution_limits_from_settings(settings: Any) -> ExecutionLimits:
    """Build ExecutionLimits from application settings."""
    return ExecutionLimits(
        max_iterations=settings.max_tool_iterations,
        max_tool_calls_per_iteration=settings.max_tool_calls_per_iteration,
        max_total_tool_calls=settings.max_total_tool_calls,
        tool_call_delay=settings.tool_call_delay,
    )


class LoopStopReason(Enum):
    """Why the tool-calling loop ended."""

    no_tool_calls = "no_tool_calls"
    max_iterations = "max_iterations"
    max_total_tool_calls = "max_total_tool_calls"


@dataclass
class ConversationState:
    """Messages plus the counters the budgets are checked against."""

    messages: List[ProviderMessage] = field(default_factory=list)
    iterations: int = 0
    total_tool_calls: int = 0
    stop_reason: Optional[LoopStopReason] = None


@dataclass
class OrchestrationOutcome:
    """Final model text and the conversation that produced it."""

    text: str
    state: ConversationState
    recovered: bool = False


class ConversationOrchestrator:
    """Drives one tool-calling conversation to a final answer."""

    def __init__(
        self,
        provider: BaseProvider,
        registry: ToolRegistry,
        limits: Optional[ExecutionLimits] = None,
        retry_config: Optional[RetryConfig] = None,
        on_progress: Optional[Callable[[str], None]] = None,
        recovery_prompt: str = JSON_RECOVERY_PROMPT,
    ):
        self.provider = provider
        self.registry = registry
        self.limits = limits or ExecutionLimits()
        self.retry_config = retry_config or RetryConfig()
        self.on_progress = on_progress
        self.recovery_prompt = recovery_prompt

    def _report(self, message: str) -> None:
        if self.on_progress is not None:
            self.on_progress(message)

    async def _send(
        self,
        state: ConversationState,
        message: ProviderMessage,
        tools: List[dict],
        context_name: str,
    ) -> ProviderResponse:
        """Append ``message``, call the model with retry and record its reply."""
        state.messages.append(message)

        response = await with_retry(
            lambda: self.provider.chat_completion(state.messages, tools or None),
            config=self.retry_config,
            context_name=context_name,
            on_retry=lambda text, _delay: self._report(text),
        )

        state.messages.append(
            ProviderMessage(
                content=response.content or "",
                role="assistant",
                tool_calls=list(response.tool_calls),
            )
        )
        return response

    async def _execute_batch(
        self, state: ConversationState, response: ProviderResponse, remaining: int
    ) -> List[ToolResult]:
        requested = response.tool_calls
        batch = requested[: min(self.limits.max_tool_calls_per_iteration, remaining)]
        if len(requested) > len(batch):
            logger.info(
                f"Limiting tool calls: {len(requested)} requested, {len(batch)} executed"
            )
        # Only executed calls stay in history so every call has a result
        state.messages[-1].tool_calls = list(batch)

        self._report(f"Running tools: {', '.join(call.name for call in batch)}")

        results: List[ToolResult] = []
        for index, call in enumerate(batch):
            if index > 0:
                await asyncio.sleep(self.limits.tool_call_delay)
            state.total_tool_calls += 1
            result = await self.registry.call_tool(call.name, call.arguments, call.id)
            if result.status == "error":
                logger.warning(f"Tool {call.name} returned error: {result.payload['error']}")
            results.append(result)
        return results

    @staticmethod
    def _drop_unanswered_calls(state: ConversationState) -> None:
        last = state.messages[-1] if state.messages else None
        if last is None or last.role != "assistant" or not last.tool_calls:
            return
        last.tool_calls = []
        if not last.content:
            state.messages.pop()

    async def run(self, prompt: str) -> OrchestrationOutcome:
        """
        Run the conversation for ``prompt``.

        Returns:
            OrchestrationOutcome with the final text. When that text holds
            no JSON, one recovery prompt has already been sent and its
            reply is used instead.

        Raises:
            QuotaExceededError: When the provider quota is exhausted
            Exception: Non-retriable provider errors, or retriable ones
                after retries run out
        """
        state = ConversationState()
        tools = self.registry.get_tools()

        response = await self._send(
            state, ProviderMessage(content=prompt, role="user"), tools, "initial prompt"
        )

        while True:
            if not response.tool_calls:
                state.stop_reason = LoopStopReason.no_tool_calls
                break

            if state.iterations >= self.limits.max_iterations:
                logger.info(f"Iteration limit reached ({self.limits.max_iterations})")
                state.stop_reason = LoopStopReason.max_iterations
                break

            remaining = self.limits.max_total_tool_calls - state.total_tool_calls
            if remaining <= 0:
                logger.info(
                    f"Total tool call limit reached ({self.limits.max_total_tool_calls})"
                )
                self._report(
                    f"Tool call limit reached ({self.limits.max_total_tool_calls} calls)"
                )
                state.stop_reason = LoopStopReason.max_total_tool_calls
                break

            results = await self._execute_batch(state, response, remaining)

            await asyncio.sleep(self.limits.tool_call_delay)
            response = await self._send(
                state,
                ProviderMessage(content="", role="tool", tool_results=results),
                tools,
                f"tool results (iteration {state.iterations + 1})",
            )
            state.iterations += 1

        self._drop_unanswered_calls(state)

        text = response.content or ""
        recovered = False
        if not has_json_payload(text):
            logger.info("No JSON in final response, requesting it explicitly")
            self._report("Requesting the final result as JSON")
            await asyncio.sleep(self.limits.tool_call_delay)
            response = await self._send(
                state,
                ProviderMessage(content=self.recovery_prompt, role="user"),
                [],
                "JSON recovery",
            )
            self._drop_unanswered_calls(state)
            text = response.content or ""
            recovered = True

        logger.info(
            f"Conversation finished: {state.iterations} iterations, "
            f"{state.total_tool_calls} tool calls, stop reason "
            f"{state.stop_reason.value if state.stop_reason else 'none'}"
        )
        return OrchestrationOutcome(text=text, state=state, recovered=recovered)
