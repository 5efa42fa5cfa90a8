"""
AgenticLoop: the bounded tool-use driver for one Mixing Desk turn.

This module implements the core "agentic" behaviour: calling the LLM,
executing the tool calls it requests, feeding results back, and repeating
until the LLM produces a final text response.

The loop is an explicit state machine::

    AWAITING_MODEL -> MODEL_RESPONDED_FINAL -> DONE
    AWAITING_MODEL -> MODEL_REQUESTED_TOOLS -> EXECUTING_TOOLS -> AWAITING_MODEL
                                                               -> DONE (round ceiling)

Tool failures never leave the loop; they are reported back to the model as
error results. LLM failures propagate to the caller untouched.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from mixingdesk.conversation.context import EmotionalDelivery, SessionContext
from mixingdesk.conversation.providers import (
    CompletionResult,
    LLMProvider,
    ToolCall,
    ToolDefinition,
    ToolResultMessage,
    UsageStats,
)
from mixingdesk.conversation.tools.delivery import EMOTIONAL_DELIVERY_TOOL
from mixingdesk.conversation.tools.registry import ToolExecutionResult, ToolExecutor

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 10

# Kiosk transcripts call the visitor "visitor"; both LLM APIs expect "user".
_ROLE_ALIASES = {"visitor": "user"}


class LoopState(enum.Enum):
    AWAITING_MODEL = "awaiting_model"
    MODEL_RESPONDED_FINAL = "model_responded_final"
    MODEL_REQUESTED_TOOLS = "model_requested_tools"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


class EmptyConversationError(ValueError):
    """Raised when a turn has no non-empty message to send to the model."""


@dataclass
class LoopResult:
    """Outcome of one turn through the loop.

    Attributes:
        final_text: The model's reply; ``""`` when it produced no text.
        tool_trace: Visitor-facing tool results in execution order. Excludes
            the emotional-delivery tool.
        emotional_delivery: The last successful delivery choice, if any.
        rounds: Number of tool-use rounds executed.
        llm_calls: Number of completion calls issued.
        ceiling_reached: ``True`` when the loop stopped at ``max_rounds``.
        usage: Token usage summed over every call that reported it.
        duration_s: Wall-clock time spent in ``run``.
    """

    final_text: str
    tool_trace: list[ToolExecutionResult] = field(default_factory=list)
    emotional_delivery: EmotionalDelivery | None = None
    rounds: int = 0
    llm_calls: int = 0
    ceiling_reached: bool = False
    usage: UsageStats | None = None
    duration_s: float = 0.0


def _is_blank_block(block: Any) -> bool:
    if isinstance(block, str):
        return not block.strip()
    if isinstance(block, dict) and block.get("type", "text") == "text":
        return not str(block.get("text") or "").strip()
    # tool_use, tool_result, image and other non-text blocks carry content
    return block is None


def is_empty_content(content: Any) -> bool:
    """Return True for ``None``, whitespace-only text, or a block list with no content.

    A block list is empty when every block is a text block whose text is
    blank; any non-text block (``tool_use``, ``tool_result``, ``image``)
    counts as content.
    """
    if content is None:
        return True
    if isinstance(content, str):
        return not content.strip()
    if isinstance(content, (list, tuple)):
        return all(_is_blank_block(block) for block in content)
    return False


def filter_history(history: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Copy *history*, dropping empty turns and normalising visitor roles."""
    filtered: list[dict[str, Any]] = []
    for message in history:
        if is_empty_content(message.get("content")):
            logger.debug("Dropping empty %s turn from history", message.get("role"))
            continue
        role = message.get("role", "user")
        filtered.append({**message, "role": _ROLE_ALIASES.get(role, role)})
    return filtered


class AgenticLoop:
    """Executes the LLM + tool-calling loop for a single conversation turn.

    Typical usage::

        loop = AgenticLoop(provider=provider, tool_executor=registry.build_executor())
        result = await loop.run(
            visitor_message="Show me the rocket image",
            history=[],
            system_prompt=prompt,
            tools=list_capabilities(),
        )

    Attributes:
        provider: The LLM backend (any `LLMProvider` implementation).
        tool_executor: Async callable ``(name, args, context) -> ToolExecutionResult``.
        max_rounds: Maximum number of tool-use rounds per turn.
        delivery_tool: Name of the tool whose result is captured as the
            emotional-delivery side channel instead of the trace.
    """

    def __init__(
        self,
        provider: LLMProvider,
        tool_executor: ToolExecutor,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        delivery_tool: str = EMOTIONAL_DELIVERY_TOOL,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1.")
        self.provider = provider
        self.tool_executor = tool_executor
        self.max_rounds = max_rounds
        self.delivery_tool = delivery_tool

    async def run(
        self,
        visitor_message: str | None,
        history: list[dict[str, Any]],
        system_prompt: str,
        tools: list[ToolDefinition] | None = None,
        session_context: SessionContext | None = None,
    ) -> LoopResult:
        """Run one conversation turn through the agentic loop.

        Args:
            visitor_message: The visitor's new message, or ``None`` when it is
                already the last entry of *history*.
            history: Prior conversation messages. Not mutated; the loop works
                on a filtered local copy.
            system_prompt: The (already augmented) system prompt.
            tools: Tool definitions advertised on every call.
            session_context: Visit state handed to tool handlers.

        Returns:
            A `LoopResult`. Reaching the round ceiling is not an error.

        Raises:
            EmptyConversationError: If no non-empty message remains. No LLM
                call is made in that case.
            LLMError: Any provider failure, unretried.
        """
        tools = tools or []
        context = session_context or SessionContext()

        messages = filter_history(history)
        if not is_empty_content(visitor_message):
            messages.append({"role": "user", "content": visitor_message})
        if not messages:
            raise EmptyConversationError("messages must contain at least one non-empty message")

        turn_start = time.monotonic()
        state = LoopState.AWAITING_MODEL
        result = LoopResult(final_text="")
        last_text = ""
        response: CompletionResult | None = None

        while state is not LoopState.DONE:
            if state is LoopState.AWAITING_MODEL:
                llm_t0 = time.monotonic()
                response = await self.provider.complete(messages, tools, system_prompt)
                result.llm_calls += 1
                logger.debug(
                    "LLM call %d took %.3fs (finish_reason=%s)",
                    result.llm_calls,
                    time.monotonic() - llm_t0,
                    response.finish_reason,
                )
                if response.usage is not None:
                    result.usage = (
                        response.usage if result.usage is None else result.usage + response.usage
                    )
                if response.content:
                    last_text = response.content

                if response.finish_reason == "tool_calls" and response.tool_calls:
                    state = LoopState.MODEL_REQUESTED_TOOLS
                else:
                    if response.finish_reason not in ("stop", "end_turn"):
                        logger.warning(
                            "Unexpected finish_reason=%r; treating response as final",
                            response.finish_reason,
                        )
                    state = LoopState.MODEL_RESPONDED_FINAL

            elif state is LoopState.MODEL_RESPONDED_FINAL:
                result.final_text = response.content or ""
                state = LoopState.DONE

            elif state is LoopState.MODEL_REQUESTED_TOOLS:
                messages.append(response.raw_message)
                state = LoopState.EXECUTING_TOOLS

            elif state is LoopState.EXECUTING_TOOLS:
                calls = response.tool_calls
                tools_t0 = time.monotonic()
                outcomes = await self._execute_tool_calls(calls, context)
                result.rounds += 1
                logger.debug(
                    "Round %d: executed %d tool(s) in %.3fs",
                    result.rounds,
                    len(calls),
                    time.monotonic() - tools_t0,
                )

                formatted: list[ToolResultMessage] = []
                for call, outcome in zip(calls, outcomes):
                    formatted.append(
                        ToolResultMessage(
                            call_id=call.id,
                            content=outcome.to_llm_content(),
                            is_error=not outcome.success,
                        )
                    )
                    if call.name == self.delivery_tool:
                        if outcome.success:
                            result.emotional_delivery = EmotionalDelivery(**outcome.payload)
                    else:
                        result.tool_trace.append(outcome)
                messages.extend(self.provider.format_tool_results(formatted))

                if result.rounds >= self.max_rounds:
                    logger.warning(
                        "Tool-use ceiling of %d round(s) reached without a final "
                        "answer; returning last available text",
                        self.max_rounds,
                    )
                    result.ceiling_reached = True
                    result.final_text = last_text
                    state = LoopState.DONE
                else:
                    state = LoopState.AWAITING_MODEL

        result.duration_s = time.monotonic() - turn_start
        logger.info(
            "Loop complete after %d call(s), %d round(s) in %.3fs",
            result.llm_calls,
            result.rounds,
            result.duration_s,
        )
        return result

    async def _execute_tool_calls(
        self, tool_calls: list[ToolCall], context: SessionContext
    ) -> list[ToolExecutionResult]:
        """Execute one round of tool calls concurrently.

        All calls are launched together via ``asyncio.gather``. The returned
        list is in the same order as *tool_calls*.
        """

        async def _run_one(tc: ToolCall) -> ToolExecutionResult:
            logger.debug("Executing tool: %s(%s)", tc.name, tc.arguments)
            try:
                return await self.tool_executor(tc.name, tc.arguments, context)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Tool %r failed: %s", tc.name, exc, exc_info=True)
                return ToolExecutionResult.failure(tc.name, str(exc) or type(exc).__name__)

        return list(await asyncio.gather(*[_run_one(tc) for tc in tool_calls]))
