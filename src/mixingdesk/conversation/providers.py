"""
LLM Provider abstractions for the Mixing Desk conversation package.

Defines the `LLMProvider` Protocol so the `AgenticLoop` can work with either
the Anthropic Messages API or any OpenAI-compatible backend without being
tied to a specific vendor SDK.

Two concrete implementations are provided:

- `AnthropicProvider` uses `anthropic.AsyncAnthropic` (``tool_use`` /
  ``tool_result`` content blocks). This is the kiosk's default.
- `OpenAICompatibleProvider` uses `openai.AsyncOpenAI` and works with any
  OpenAI-compatible base URL (OpenAI, Ollama, LiteLLM proxy, ...).

Also provides:
- Custom exception hierarchy for LLM API errors.
- ``UsageStats`` / ``CostEstimator`` for token usage and cost tracking.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import anthropic
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Custom exception hierarchy
# ---------------------------------------------------------------------------


class LLMError(Exception):
    """Base exception for all LLM provider errors."""


class LLMRateLimitError(LLMError):
    """Raised when the LLM API returns a rate-limit (429) response."""


class LLMConnectionError(LLMError):
    """Raised when the LLM API endpoint cannot be reached."""


class LLMAPIError(LLMError):
    """Raised for other LLM API errors (e.g., 5xx, authentication failures).

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Usage statistics and cost estimation
# ---------------------------------------------------------------------------


@dataclass
class UsageStats:
    """Token usage recorded for a single LLM completion call.

    Attributes:
        prompt_tokens: Number of input tokens consumed.
        completion_tokens: Number of output tokens generated.
        total_tokens: Combined token count.
        estimated_cost_usd: Estimated cost in USD, or ``None`` if the model is
            not in the ``CostEstimator`` database.
    """

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    estimated_cost_usd: float | None = None

    def __add__(self, other: UsageStats) -> UsageStats:
        if self.estimated_cost_usd is None and other.estimated_cost_usd is None:
            cost = None
        else:
            cost = (self.estimated_cost_usd or 0.0) + (other.estimated_cost_usd or 0.0)
        return UsageStats(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            estimated_cost_usd=cost,
        )


# (input_per_1k_tokens, output_per_1k_tokens) in USD
_MODEL_COSTS: dict[str, tuple[float, float]] = {
    "claude-sonnet-4-20250514": (0.003, 0.015),
    "claude-opus-4-20250514": (0.015, 0.075),
    "claude-3-5-haiku-20241022": (0.001, 0.005),
    "claude-3-5-sonnet-20241022": (0.003, 0.015),
    "claude-haiku-4-5-20251001": (0.001, 0.005),
    "claude-sonnet-4-5": (0.003, 0.015),
    "gpt-4o": (0.005, 0.015),
    "gpt-4o-mini": (0.000150, 0.000600),
}


class CostEstimator:
    """Estimates USD cost for an LLM completion based on token counts.

    Unknown models return ``None`` rather than raising an error. Costs are
    approximate and may lag actual provider pricing.
    """

    def estimate(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
    ) -> float | None:
        """Estimate cost in USD for a single completion call.

        Returns:
            Estimated cost in USD, or ``None`` if the model is not in the
            database.
        """
        costs = _MODEL_COSTS.get(model)
        if costs is None:
            return None
        input_cost_per_1k, output_cost_per_1k = costs
        return (
            prompt_tokens * input_cost_per_1k / 1000.0
            + completion_tokens * output_cost_per_1k / 1000.0
        )


def _usage_stats(
    estimator: CostEstimator | None,
    model: str,
    prompt_tokens: int,
    completion_tokens: int,
    total_tokens: int | None = None,
) -> UsageStats:
    """Build ``UsageStats`` for one call, pricing it when an estimator is set."""
    estimated_cost: float | None = None
    if estimator is not None:
        estimated_cost = estimator.estimate(model, prompt_tokens, completion_tokens)
    return UsageStats(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=(
            total_tokens if total_tokens is not None else prompt_tokens + completion_tokens
        ),
        estimated_cost_usd=estimated_cost,
    )


# ---------------------------------------------------------------------------
# Core data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ToolDefinition:
    """Describes a capability the LLM may invoke.

    Attributes:
        name: The tool's unique name (used by the LLM to invoke it).
        description: Human-readable description shown in the LLM's tool prompt.
        parameters: JSON Schema dict describing the tool's input parameters.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def to_openai_format(self) -> dict[str, Any]:
        """Serialise to OpenAI tool definition format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_format(self) -> dict[str, Any]:
        """Serialise to Anthropic Messages API tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters or {"type": "object", "properties": {}},
        }


@dataclass
class ToolCall:
    """A tool invocation requested by the LLM.

    Attributes:
        id: Unique call ID returned by the LLM (used to correlate the result).
        name: Name of the tool to invoke.
        arguments: Parsed JSON arguments dict.
    """

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResultMessage:
    """One formatted tool result waiting to be sent back to the LLM.

    Attributes:
        call_id: The ``ToolCall.id`` this result answers.
        content: JSON-encoded result body.
        is_error: ``True`` when the tool reported a failure.
    """

    call_id: str
    content: str
    is_error: bool = False


@dataclass
class CompletionResult:
    """Result of a single LLM completion call, normalised across providers.

    The loop checks `finish_reason` to determine whether to return the final
    text or continue dispatching tool calls.

    Attributes:
        finish_reason: ``"stop"`` for a final text response, ``"tool_calls"``
            when the LLM wants to invoke tools.
        content: First text block of the response, or ``None`` if there was none.
        tool_calls: Requested tool invocations, in the order the model emitted them.
        raw_message: The raw assistant message dict (for appending to history).
        usage: Token usage and cost for this call, or ``None`` if unavailable.
    """

    finish_reason: str
    content: str | None
    tool_calls: list[ToolCall]
    raw_message: dict[str, Any]
    usage: UsageStats | None = None


# ---------------------------------------------------------------------------
# LLMProvider Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for LLM backends used by AgenticLoop."""

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> CompletionResult:
        """Send a completion request to the LLM.

        Args:
            messages: The conversation so far, oldest first.
            tools: The available tool definitions.
            system_prompt: System instructions for this call.

        Returns:
            A `CompletionResult` describing the LLM's response.

        Raises:
            LLMRateLimitError: If the API returns a 429 rate-limit response.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMAPIError: For other API-level failures.
        """
        ...

    def format_tool_results(
        self, results: list[ToolResultMessage]
    ) -> list[dict[str, Any]]:
        """Convert one round of tool results into history messages."""
        ...


# ---------------------------------------------------------------------------
# Anthropic provider
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """LLM provider backed by the Anthropic Messages API.

    Attributes:
        model: The Claude model identifier.
        max_tokens: Output token cap per call.
        temperature: Sampling temperature, or ``None`` for the API default.
        cost_estimator: Optional ``CostEstimator`` for tracking USD cost.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 1024,
        temperature: float | None = None,
        cost_estimator: CostEstimator | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.cost_estimator = cost_estimator
        self._client = anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> CompletionResult:
        """Call Claude and return a structured `CompletionResult`.

        Raises:
            LLMRateLimitError: If the API returns a 429 response.
            LLMConnectionError: If the API endpoint cannot be reached.
            LLMAPIError: For other API-level failures (e.g. 4xx/5xx).
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }
        if system_prompt:
            kwargs["system"] = system_prompt
        if tools:
            kwargs["tools"] = [t.to_anthropic_format() for t in tools]
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature

        logger.debug(
            "LLM request: model=%s, messages=%d, tools=%d",
            self.model,
            len(messages),
            len(tools),
        )

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.RateLimitError as exc:
            logger.warning("LLM rate limit exceeded: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except anthropic.APIConnectionError as exc:
            logger.error("LLM connection failed: %s", exc)
            raise LLMConnectionError(f"Could not connect to LLM endpoint: {exc}") from exc
        except anthropic.APIStatusError as exc:
            logger.error("LLM API error %d: %s", exc.status_code, exc)
            raise LLMAPIError(
                f"LLM API returned status {exc.status_code}: {exc}",
                status_code=exc.status_code,
            ) from exc

        text: str | None = None
        tool_calls: list[ToolCall] = []
        blocks: list[dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                if text is None:
                    text = block.text
                blocks.append({"type": "text", "text": block.text})
            elif block.type == "tool_use":
                args = block.input if isinstance(block.input, dict) else {}
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=args))
                blocks.append(
                    {"type": "tool_use", "id": block.id, "name": block.name, "input": args}
                )

        finish_reason = "tool_calls" if response.stop_reason == "tool_use" else "stop"

        usage: UsageStats | None = None
        if response.usage is not None:
            usage = _usage_stats(
                self.cost_estimator,
                self.model,
                response.usage.input_tokens,
                response.usage.output_tokens,
            )

        logger.debug(
            "LLM response: stop_reason=%s, tool_calls=%d, tokens=%s",
            response.stop_reason,
            len(tool_calls),
            usage.total_tokens if usage else "n/a",
        )

        return CompletionResult(
            finish_reason=finish_reason,
            content=text,
            tool_calls=tool_calls,
            raw_message={"role": "assistant", "content": blocks},
            usage=usage,
        )

    def format_tool_results(
        self, results: list[ToolResultMessage]
    ) -> list[dict[str, Any]]:
        """Bundle every result of a round into a single user turn."""
        content: list[dict[str, Any]] = []
        for result in results:
            block: dict[str, Any] = {
                "type": "tool_result",
                "tool_use_id": result.call_id,
                "content": result.content,
            }
            if result.is_error:
                block["is_error"] = True
            content.append(block)
        return [{"role": "user", "content": content}]


# ---------------------------------------------------------------------------
# OpenAI-compatible provider
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """Chat Completions backend for deployments that do not use Claude.

    The kiosk's transcript and the loop's history use Anthropic-shaped
    messages, so this provider adapts them on the way out: the system prompt
    becomes a leading ``system`` message, and text-block content is flattened
    to the plain strings Chat Completions endpoints expect.

    Attributes:
        base_url: The API base URL (OpenAI, Ollama, a LiteLLM proxy, ...).
        model: The model identifier.
        temperature: Sampling temperature.
        cost_estimator: Optional ``CostEstimator`` for tracking USD cost.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        api_key: str = "",
        temperature: float = 0.7,
        cost_estimator: CostEstimator | None = None,
    ) -> None:
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.cost_estimator = cost_estimator
        self._client = AsyncOpenAI(base_url=base_url, api_key=api_key)

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> CompletionResult:
        """Run one chat completion over the kiosk transcript.

        Raises:
            LLMRateLimitError: On a 429 response.
            LLMConnectionError: If the endpoint cannot be reached.
            LLMAPIError: For other API failures, or a response with no choices.
        """
        request: dict[str, Any] = {
            "model": self.model,
            "messages": self._request_messages(messages, system_prompt),
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = [t.to_openai_format() for t in tools]

        logger.debug(
            "Chat completion request: model=%s, messages=%d, tools=%d",
            self.model,
            len(request["messages"]),
            len(tools),
        )

        try:
            response = await self._client.chat.completions.create(**request)
        except RateLimitError as exc:
            logger.warning("Chat completion rate limited: %s", exc)
            raise LLMRateLimitError(f"Rate limit exceeded: {exc}") from exc
        except APIConnectionError as exc:
            logger.error("Chat completion endpoint unreachable: %s", exc)
            raise LLMConnectionError(f"Could not connect to LLM endpoint: {exc}") from exc
        except APIStatusError as exc:
            logger.error("Chat completion failed with status %d: %s", exc.status_code, exc)
            raise LLMAPIError(
                f"LLM API returned status {exc.status_code}: {exc}",
                status_code=exc.status_code,
            ) from exc

        if not response.choices:
            raise LLMAPIError("LLM response contained no choices")

        choice = response.choices[0]
        tool_calls = self._parse_tool_calls(choice.message.tool_calls or [])
        # Some OpenAI-compatible servers report "stop" alongside tool calls.
        finish_reason = "tool_calls" if tool_calls else (choice.finish_reason or "stop")

        usage: UsageStats | None = None
        if response.usage is not None:
            usage = _usage_stats(
                self.cost_estimator,
                self.model,
                response.usage.prompt_tokens,
                response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return CompletionResult(
            finish_reason=finish_reason,
            content=choice.message.content,
            tool_calls=tool_calls,
            raw_message=self._assistant_message(choice.message.content, tool_calls),
            usage=usage,
        )

    def format_tool_results(
        self, results: list[ToolResultMessage]
    ) -> list[dict[str, Any]]:
        """One ``tool`` message per result, keyed by ``tool_call_id``."""
        return [
            {"role": "tool", "tool_call_id": r.call_id, "content": r.content}
            for r in results
        ]

    # ------------------------------------------------------------------
    # Message shaping
    # ------------------------------------------------------------------

    @staticmethod
    def _request_messages(
        messages: list[dict[str, Any]], system_prompt: str | None
    ) -> list[dict[str, Any]]:
        shaped: list[dict[str, Any]] = []
        if system_prompt:
            shaped.append({"role": "system", "content": system_prompt})
        for message in messages:
            content = message.get("content")
            if isinstance(content, list):
                message = {**message, "content": _flatten_text_blocks(content)}
            shaped.append(message)
        return shaped

    @staticmethod
    def _parse_tool_calls(raw_calls: list[Any]) -> list[ToolCall]:
        calls: list[ToolCall] = []
        for raw in raw_calls:
            try:
                args = json.loads(raw.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(
                    "Tool call %s (%s) had malformed arguments; using {}",
                    raw.id,
                    raw.function.name,
                )
                args = {}
            if not isinstance(args, dict):
                args = {}
            calls.append(ToolCall(id=raw.id, name=raw.function.name, arguments=args))
        return calls

    @staticmethod
    def _assistant_message(
        content: str | None, tool_calls: list[ToolCall]
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            message["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in tool_calls
            ]
        return message


def _flatten_text_blocks(blocks: list[Any]) -> str:
    """Join the text of Anthropic-style content blocks into one string."""
    parts: list[str] = []
    for block in blocks:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type", "text") == "text":
            parts.append(str(block.get("text") or ""))
    return "\n".join(p for p in parts if p.strip())
