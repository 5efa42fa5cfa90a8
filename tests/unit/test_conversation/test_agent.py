"""Unit tests for mixingdesk.conversation.agent."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mixingdesk.config import Settings
from mixingdesk.conversation.agent import MixingDeskAgent, build_provider
from mixingdesk.conversation.context import (
    DetectedEmotion,
    EmotionalContext,
    TurnInput,
    VisitContext,
    VisitNote,
)
from mixingdesk.conversation.loop import EmptyConversationError
from mixingdesk.conversation.providers import (
    AnthropicProvider,
    CompletionResult,
    LLMAPIError,
    OpenAICompatibleProvider,
    ToolCall,
)
from mixingdesk.conversation.tools.registry import ToolExecutionResult


def _settings(**overrides) -> Settings:
    values = {
        "anthropic_api_key": "sk-ant-test",
        "openai_api_key": "sk-test",
        "supabase_url": "https://store.example",
        "supabase_anon_key": "anon",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _provider(*results: CompletionResult) -> MagicMock:
    provider = MagicMock()
    provider.complete = AsyncMock(side_effect=list(results))
    provider.format_tool_results = MagicMock(
        side_effect=lambda results: [{"role": "user", "content": [r.content for r in results]}]
    )
    return provider


def _stop(text: str) -> CompletionResult:
    return CompletionResult("stop", text, [], {"role": "assistant", "content": text})


# ---------------------------------------------------------------------------
# build_provider
# ---------------------------------------------------------------------------


def test_build_provider_anthropic() -> None:
    with patch("mixingdesk.conversation.providers.anthropic.AsyncAnthropic"):
        provider = build_provider(_settings(llm_provider="anthropic"))
    assert isinstance(provider, AnthropicProvider)
    assert provider.model == "claude-sonnet-4-20250514"


def test_build_provider_openai() -> None:
    with patch("mixingdesk.conversation.providers.AsyncOpenAI"):
        provider = build_provider(_settings(llm_provider="openai", openai_model="gpt-4o"))
    assert isinstance(provider, OpenAICompatibleProvider)
    assert provider.model == "gpt-4o"


def test_build_provider_unknown() -> None:
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        build_provider(_settings(llm_provider="carrier-pigeon"))


# ---------------------------------------------------------------------------
# async_process
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_async_process_augments_prompt_and_assembles_payload() -> None:
    provider = _provider(
        CompletionResult(
            "tool_calls",
            None,
            [ToolCall("c1", "set-emotional-delivery", {"tone": "calm"})],
            {"role": "assistant", "content": []},
        ),
        _stop("Take your time."),
    )

    async def executor(name, args, context):
        return ToolExecutionResult.ok(name, {"tone": "calm", "intensity": 0.7, "pacing": "gentle"})

    agent = MixingDeskAgent(provider=provider, tool_executor=executor)
    turn = TurnInput(
        messages=[{"role": "user", "content": "I'm a bit nervous"}],
        system_prompt="BASE",
        emotional_context=EmotionalContext(primary_emotion=DetectedEmotion("anxiety", 0.8)),
    )

    outcome = await agent.async_process(turn)

    assert outcome.payload == {
        "message": "Take your time.",
        "tool_results": [],
        "emotional_delivery": {"tone": "calm", "intensity": 0.7, "pacing": "gentle"},
    }
    system_prompt = provider.complete.call_args_list[0][0][2]
    assert system_prompt.startswith("BASE\n\n")
    assert "80%" in system_prompt
    assert len(provider.complete.call_args_list[0][0][1]) == 7


@pytest.mark.anyio
async def test_async_process_passes_visit_to_tools() -> None:
    seen = []

    async def executor(name, args, context):
        seen.append(context.visit_id)
        return ToolExecutionResult.ok(name, {})

    provider = _provider(
        CompletionResult(
            "tool_calls",
            None,
            [ToolCall("c1", "read-visit-notes", {})],
            {"role": "assistant", "content": []},
        ),
        _stop("You told me you love rockets."),
    )
    agent = MixingDeskAgent(provider=provider, tool_executor=executor)
    visit = VisitContext("visit-123", (VisitNote("t", "checkin", "Loves rockets"),))

    await agent.async_process(
        TurnInput(messages=[{"role": "visitor", "content": "Remember me?"}], system_prompt="B", visit=visit)
    )

    assert seen == ["visit-123"]


@pytest.mark.anyio
async def test_async_process_empty_transcript_raises() -> None:
    provider = _provider()
    agent = MixingDeskAgent(provider=provider, tool_executor=AsyncMock())

    with pytest.raises(EmptyConversationError):
        await agent.async_process(TurnInput(messages=[], system_prompt="B"))

    provider.complete.assert_not_called()


@pytest.mark.anyio
async def test_async_process_propagates_llm_error() -> None:
    provider = MagicMock()
    provider.complete = AsyncMock(side_effect=LLMAPIError("bad key", status_code=401))
    agent = MixingDeskAgent(provider=provider, tool_executor=AsyncMock())

    with pytest.raises(LLMAPIError):
        await agent.async_process(
            TurnInput(messages=[{"role": "user", "content": "Hi"}], system_prompt="B")
        )


def test_from_settings_uses_tool_rounds_and_capabilities() -> None:
    with patch("mixingdesk.conversation.providers.anthropic.AsyncAnthropic"):
        agent = MixingDeskAgent.from_settings(_settings(max_tool_rounds=4), store=MagicMock())

    assert agent._loop.max_rounds == 4
    assert [t.name for t in agent.tools][:2] == ["display-image", "display-content"]
