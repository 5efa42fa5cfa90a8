"""
MixingDeskAgent: one visitor turn, end to end.

Connects the pieces of the conversation package in order: the prompt
augmenter enriches the agent OS prompt with emotion and visit context, the
``AgenticLoop`` runs the tool-use rounds, and the response assembler shapes
the outcome for the kiosk.

The agent is stateless between turns; the kiosk sends the full transcript
with every request and owns persistence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from mixingdesk.config import Settings
from mixingdesk.conversation.capabilities import build_tool_registry, list_capabilities
from mixingdesk.conversation.context import SessionContext, TurnInput
from mixingdesk.conversation.loop import DEFAULT_MAX_ROUNDS, AgenticLoop, LoopResult
from mixingdesk.conversation.prompts import augment
from mixingdesk.conversation.providers import (
    AnthropicProvider,
    CostEstimator,
    LLMError,
    LLMProvider,
    OpenAICompatibleProvider,
    ToolDefinition,
)
from mixingdesk.conversation.response import assemble
from mixingdesk.conversation.tools.registry import ToolExecutor
from mixingdesk.storage.base import ContentStore

logger = logging.getLogger(__name__)


@dataclass
class TurnOutcome:
    """Result of a single turn.

    Attributes:
        payload: Wire payload (``message``, ``tool_results``, optional
            ``emotional_delivery``).
        result: The underlying ``LoopResult`` for logging and host actions.
    """

    payload: dict[str, Any]
    result: LoopResult


def build_provider(settings: Settings) -> LLMProvider:
    """Construct the configured LLM provider.

    Raises:
        ValueError: If ``settings.llm_provider`` is not recognised.
    """
    estimator = CostEstimator()
    if settings.llm_provider == "anthropic":
        return AnthropicProvider(
            api_key=settings.anthropic_api_key or "",
            model=settings.anthropic_model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            cost_estimator=estimator,
        )
    if settings.llm_provider == "openai":
        return OpenAICompatibleProvider(
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            api_key=settings.openai_api_key or "",
            temperature=settings.temperature if settings.temperature is not None else 0.7,
            cost_estimator=estimator,
        )
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider!r}")


class MixingDeskAgent:
    """Visitor-facing agent backed by the AgenticLoop.

    Attributes:
        name: Display name used in logs and the health endpoint.
        tools: Tool definitions advertised to the LLM on every call.
    """

    def __init__(
        self,
        provider: LLMProvider,
        tool_executor: ToolExecutor,
        tools: list[ToolDefinition] | None = None,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        name: str = "Mixing Desk",
    ) -> None:
        self.name = name
        self.tools = list(tools) if tools is not None else list_capabilities()
        self._loop = AgenticLoop(
            provider=provider,
            tool_executor=tool_executor,
            max_rounds=max_rounds,
        )

    @classmethod
    def from_settings(cls, settings: Settings, store: ContentStore) -> MixingDeskAgent:
        registry = build_tool_registry(store)
        return cls(
            provider=build_provider(settings),
            tool_executor=registry.build_executor(
                timeout=settings.tool_timeout,
                max_retries=settings.tool_max_retries,
            ),
            tools=registry.get_definitions(),
            max_rounds=settings.max_tool_rounds,
        )

    async def async_process(self, turn: TurnInput) -> TurnOutcome:
        """Process one visitor turn.

        Raises:
            EmptyConversationError: If the transcript has no non-empty message.
            LLMError: If the model call fails; the turn is not retried.
        """
        system_prompt = augment(turn.system_prompt, turn.emotional_context, turn.visit)

        logger.info(
            "Processing turn: messages=%d, emotional_context=%s, visit=%r",
            len(turn.messages),
            turn.emotional_context is not None,
            turn.visit.visit_id if turn.visit else None,
        )

        try:
            result = await self._loop.run(
                visitor_message=None,
                history=turn.messages,
                system_prompt=system_prompt,
                tools=self.tools,
                session_context=SessionContext(visit=turn.visit),
            )
        except LLMError as exc:
            logger.error("LLM failure during turn: %s", exc)
            raise

        logger.info(
            "Turn complete: rounds=%d, tools=%d, delivery=%s, tokens=%s, cost=%s",
            result.rounds,
            len(result.tool_trace),
            result.emotional_delivery.tone if result.emotional_delivery else None,
            result.usage.total_tokens if result.usage else "n/a",
            result.usage.estimated_cost_usd if result.usage else "n/a",
        )
        return TurnOutcome(payload=assemble(result), result=result)
