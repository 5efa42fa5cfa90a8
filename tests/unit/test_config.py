"""Unit tests for mixingdesk.config."""

from __future__ import annotations

import pytest

from mixingdesk.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.llm_provider == "anthropic"
    assert settings.anthropic_model == "claude-sonnet-4-20250514"
    assert settings.max_tool_rounds == 10
    assert settings.image_bucket == "test-images"
    assert settings.apply_visit_actions is False


def test_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MIXINGDESK_MAX_TOOL_ROUNDS", "3")
    monkeypatch.setenv("MIXINGDESK_LLM_PROVIDER", "openai")

    settings = Settings(_env_file=None)

    assert settings.max_tool_rounds == 3
    assert settings.llm_provider == "openai"


def test_unprefixed_credentials_are_accepted(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MIXINGDESK_ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("MIXINGDESK_SUPABASE_URL", raising=False)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-env")
    monkeypatch.setenv("SUPABASE_URL", "https://abc.supabase.co")

    settings = Settings(_env_file=None)

    assert settings.anthropic_api_key == "sk-ant-env"
    assert settings.supabase_url == "https://abc.supabase.co"


def test_configuration_errors_reports_missing_credentials() -> None:
    settings = Settings(
        _env_file=None, anthropic_api_key=None, supabase_url=None, supabase_anon_key=None
    )

    assert settings.configuration_errors() == [
        "ANTHROPIC_API_KEY not configured",
        "Supabase credentials not configured",
    ]


def test_configuration_errors_openai() -> None:
    settings = Settings(
        _env_file=None,
        llm_provider="openai",
        openai_api_key=None,
        supabase_url="https://abc.supabase.co",
        supabase_anon_key="anon",
    )

    assert settings.configuration_errors() == ["OPENAI_API_KEY not configured"]


def test_unknown_provider_is_a_configuration_error() -> None:
    settings = Settings(_env_file=None, llm_provider="carrier-pigeon")

    assert settings.llm_configuration_errors() == ["Unknown LLM provider: carrier-pigeon"]


def test_zero_tool_rounds_is_a_configuration_error() -> None:
    settings = Settings(
        _env_file=None,
        anthropic_api_key="sk-ant",
        supabase_url="https://abc.supabase.co",
        supabase_anon_key="anon",
        max_tool_rounds=0,
    )

    assert settings.configuration_errors() == [
        "MIXINGDESK_MAX_TOOL_ROUNDS must be at least 1, got 0"
    ]


def test_complete_configuration_has_no_errors() -> None:
    settings = Settings(
        _env_file=None,
        anthropic_api_key="sk-ant",
        supabase_url="https://abc.supabase.co",
        supabase_anon_key="anon",
    )

    assert settings.configuration_errors() == []
