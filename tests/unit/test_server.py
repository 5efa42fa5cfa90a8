"""Unit tests for mixingdesk.server.

Tests use httpx.AsyncClient against the ASGI app (no real HTTP server).
The agent is wired with a mocked LLM provider and a mocked content store so
no real LLM or Supabase project is needed.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from mixingdesk.config import Settings
from mixingdesk.conversation.agent import MixingDeskAgent
from mixingdesk.conversation.capabilities import build_tool_registry
from mixingdesk.conversation.providers import (
    CompletionResult,
    LLMConnectionError,
    ToolCall,
)
from mixingdesk.server import create_app
from mixingdesk.storage.base import ContentStoreError

ROCKET_URL = "https://abc.supabase.co/storage/v1/object/public/test-images/rocket.png"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "anthropic_api_key": "sk-ant-test",
        "supabase_url": "https://abc.supabase.co",
        "supabase_anon_key": "anon",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _stop(text: str) -> CompletionResult:
    return CompletionResult(
        "stop", text, [], {"role": "assistant", "content": [{"type": "text", "text": text}]}
    )


def _tools(*calls: tuple[str, str, dict[str, Any]]) -> CompletionResult:
    tool_calls = [ToolCall(id=i, name=n, arguments=a) for i, n, a in calls]
    return CompletionResult(
        "tool_calls",
        None,
        tool_calls,
        {
            "role": "assistant",
            "content": [
                {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
                for tc in tool_calls
            ],
        },
    )


def _provider(*results: CompletionResult) -> MagicMock:
    provider = MagicMock()
    provider.complete = AsyncMock(side_effect=list(results))
    provider.format_tool_results = MagicMock(
        side_effect=lambda rs: [
            {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": r.call_id, "content": r.content}
                    for r in rs
                ],
            }
        ]
    )
    return provider


def _store() -> MagicMock:
    store = MagicMock()
    store.asset_url = AsyncMock(return_value=ROCKET_URL)
    store.search_library = AsyncMock(return_value=[])
    store.get_agent_os = AsyncMock(return_value=None)
    store.add_visit_note = AsyncMock(return_value={})
    store.update_visit_status = AsyncMock(return_value={})
    return store


def _agent(provider: MagicMock, store: MagicMock) -> MixingDeskAgent:
    registry = build_tool_registry(store)
    return MixingDeskAgent(
        provider=provider,
        tool_executor=registry.build_executor(timeout=5.0),
        tools=registry.get_definitions(),
    )


def _client(settings: Settings | None = None, agent=None, store=None) -> AsyncClient:
    app = create_app(settings or _settings(), agent=agent, store=store)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _chat_body(content: str = "Hello", **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "messages": [{"role": "user", "content": content}],
        "systemPrompt": "You are the Mixing Desk.",
    }
    body.update(extra)
    return body


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_health_lists_tools() -> None:
    async with _client() as client:
        resp = await client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["llm_provider"] == "anthropic"
    assert "set-emotional-delivery" in body["tools"]


# ---------------------------------------------------------------------------
# POST /api/agent/chat: validation
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_chat_empty_messages_returns_400_without_llm_call() -> None:
    provider = _provider()
    async with _client(agent=_agent(provider, _store()), store=_store()) as client:
        resp = await client.post(
            "/api/agent/chat", json={"messages": [], "systemPrompt": "You are the Mixing Desk."}
        )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation error"
    assert resp.json()["details"]
    provider.complete.assert_not_called()


@pytest.mark.anyio
async def test_chat_whitespace_only_messages_returns_400() -> None:
    provider = _provider()
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("   "))

    assert resp.status_code == 400
    provider.complete.assert_not_called()


@pytest.mark.anyio
async def test_chat_blank_block_messages_returns_400() -> None:
    provider = _provider()
    body = {
        "messages": [
            {"role": "user", "content": [{"type": "text", "text": "   "}]},
            {"role": "assistant", "content": [{"type": "text", "text": ""}]},
        ],
        "systemPrompt": "You are the Mixing Desk.",
    }
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation error"
    assert provider.complete.await_count == 0


@pytest.mark.anyio
async def test_chat_missing_system_prompt_returns_400() -> None:
    provider = _provider()
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post(
            "/api/agent/chat", json={"messages": [{"role": "user", "content": "Hi"}]}
        )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation error"
    assert "systemPrompt" in resp.json()["details"]
    provider.complete.assert_not_called()


@pytest.mark.anyio
async def test_chat_out_of_range_emotion_score_returns_400() -> None:
    provider = _provider()
    body = _chat_body(emotionalContext={"primary_emotion": {"label": "joy", "score": 1.5}})
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=body)

    assert resp.status_code == 400


@pytest.mark.anyio
async def test_chat_get_returns_405() -> None:
    async with _client() as client:
        resp = await client.get("/api/agent/chat")

    assert resp.status_code == 405
    assert "error" in resp.json()


# ---------------------------------------------------------------------------
# POST /api/agent/chat: configuration and upstream failures
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_chat_missing_llm_key_returns_500_configuration_error() -> None:
    settings = _settings(anthropic_api_key=None)
    async with _client(settings) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body())

    assert resp.status_code == 500
    assert resp.json()["error"] == "Server configuration error"
    assert "ANTHROPIC_API_KEY" in resp.json()["details"]


@pytest.mark.anyio
async def test_chat_missing_store_credentials_returns_500() -> None:
    settings = _settings(supabase_url=None, supabase_anon_key=None)
    async with _client(settings) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body())

    assert resp.status_code == 500
    assert resp.json()["error"] == "Server configuration error"


@pytest.mark.anyio
async def test_chat_zero_tool_rounds_returns_500_configuration_error() -> None:
    async with _client(_settings(max_tool_rounds=0), store=_store()) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body())

    assert resp.status_code == 500
    assert resp.json()["error"] == "Server configuration error"
    assert "MIXINGDESK_MAX_TOOL_ROUNDS" in resp.json()["details"]


@pytest.mark.anyio
async def test_chat_llm_failure_returns_500() -> None:
    provider = MagicMock()
    provider.complete = AsyncMock(side_effect=LLMConnectionError("Could not connect"))
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error", "details": "Could not connect"}


# ---------------------------------------------------------------------------
# POST /api/agent/chat: scenarios
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_chat_plain_greeting() -> None:
    provider = _provider(_stop("Welcome to the Mixing Desk!"))
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("Hello"))

    assert resp.status_code == 200
    assert resp.json() == {"message": "Welcome to the Mixing Desk!", "tool_results": []}
    provider.complete.assert_called_once()


@pytest.mark.anyio
async def test_chat_rocket_image_scenario() -> None:
    provider = _provider(
        _tools(("toolu_1", "display-image", {"image_path": "rocket.png"})),
        _stop("Here's the rocket!"),
    )
    store = _store()
    async with _client(agent=_agent(provider, store), store=store) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("Show me the rocket image"))

    assert resp.status_code == 200
    assert resp.json() == {
        "message": "Here's the rocket!",
        "tool_results": [
            {"tool": "display-image", "success": True, "data": {"image_url": ROCKET_URL}}
        ],
    }
    store.asset_url.assert_awaited_once_with("rocket.png")


@pytest.mark.anyio
async def test_chat_anxious_visitor_gets_calm_delivery() -> None:
    provider = _provider(
        _tools(
            (
                "toolu_1",
                "set-emotional-delivery",
                {"tone": "calm", "intensity": 0.6, "pacing": "gentle"},
            )
        ),
        _stop("That's completely okay. Let's take it one step at a time."),
    )
    body = _chat_body(
        "I'm not sure I can do this...",
        emotionalContext={
            "primary_emotion": {"label": "anxiety", "score": 0.8},
            "pace": "slow",
            "tone": "hesitant",
        },
    )
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=body)

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["tool_results"] == []
    assert payload["emotional_delivery"] == {"tone": "calm", "intensity": 0.6, "pacing": "gentle"}

    system_prompt = provider.complete.call_args_list[0][0][2]
    assert "anxiety" in system_prompt
    assert "80%" in system_prompt


@pytest.mark.anyio
async def test_chat_unknown_tool_is_reported_as_failure() -> None:
    provider = _provider(
        _tools(("toolu_1", "fly-to-moon", {})),
        _stop("I can't do that, but I can show you the moon."),
    )
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("Fly me to the moon"))

    assert resp.status_code == 200
    assert resp.json()["tool_results"] == [
        {"tool": "fly-to-moon", "success": False, "error": "Unknown tool: fly-to-moon"}
    ]


@pytest.mark.anyio
async def test_chat_visit_notes_reach_prompt() -> None:
    provider = _provider(_stop("Welcome back!"))
    body = _chat_body(
        "Hi again",
        visitId="3f2a9c71-0000-0000-0000-000000000000",
        visitNotes=[{"timestamp": "t", "source": "checkin", "content": "Loves rockets"}],
    )
    async with _client(agent=_agent(provider, _store())) as client:
        resp = await client.post("/api/agent/chat", json=body)

    assert resp.status_code == 200
    system_prompt = provider.complete.call_args_list[0][0][2]
    assert "Visit ID: 3f2a9c71..." in system_prompt
    assert "- [checkin] Loves rockets" in system_prompt


@pytest.mark.anyio
async def test_chat_applies_visit_actions_when_enabled() -> None:
    provider = _provider(
        _tools(("toolu_1", "end-session", {"summary": "Enjoyed the rockets"})),
        _stop("Goodbye!"),
    )
    store = _store()
    async with _client(
        _settings(apply_visit_actions=True), agent=_agent(provider, store), store=store
    ) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("Bye!", visitId="v-1"))

    assert resp.status_code == 200
    store.add_visit_note.assert_awaited_once_with("v-1", "checkout", "Enjoyed the rockets")
    store.update_visit_status.assert_awaited_once_with("v-1", "checking_out")


@pytest.mark.anyio
async def test_chat_leaves_visit_untouched_by_default() -> None:
    provider = _provider(
        _tools(("toolu_1", "add-visit-note", {"content": "Likes Mars"})),
        _stop("Noted!"),
    )
    store = _store()
    async with _client(agent=_agent(provider, store), store=store) as client:
        resp = await client.post("/api/agent/chat", json=_chat_body("I like Mars", visitId="v-1"))

    assert resp.json()["tool_results"][0]["data"]["action"] == "add_visit_note"
    store.add_visit_note.assert_not_called()


# ---------------------------------------------------------------------------
# POST /api/agent/init
# ---------------------------------------------------------------------------


@pytest.mark.anyio
async def test_init_returns_agent_os() -> None:
    store = _store()
    store.get_agent_os = AsyncMock(return_value={"agent_name": "guide", "content": "You are..."})
    async with _client(store=store) as client:
        resp = await client.post("/api/agent/init", json={"agent_name": "guide"})

    assert resp.status_code == 200
    assert resp.json() == {"agentOS": {"agent_name": "guide", "content": "You are..."}}


@pytest.mark.anyio
async def test_init_unknown_agent_returns_404() -> None:
    async with _client(store=_store()) as client:
        resp = await client.post("/api/agent/init", json={"agent_name": "nobody"})

    assert resp.status_code == 404
    assert resp.json()["error"] == "Agent OS not found"


@pytest.mark.anyio
async def test_init_missing_agent_name_returns_400() -> None:
    async with _client(store=_store()) as client:
        resp = await client.post("/api/agent/init", json={})

    assert resp.status_code == 400


@pytest.mark.anyio
async def test_init_store_failure_returns_500() -> None:
    store = _store()
    store.get_agent_os = AsyncMock(side_effect=ContentStoreError("permission denied"))
    async with _client(store=store) as client:
        resp = await client.post("/api/agent/init", json={"agent_name": "guide"})

    assert resp.status_code == 500
    assert resp.json()["details"] == "permission denied"
