"""
Configuration management for the Mixing Desk agent service.

This module provides a Settings class that loads configuration from environment
variables, allowing easy configuration without code changes.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # LLM settings
    llm_provider: str = "anthropic"  # anthropic, openai
    anthropic_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MIXINGDESK_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    anthropic_model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024
    temperature: float | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MIXINGDESK_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"

    # Content store (Supabase)
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MIXINGDESK_SUPABASE_URL", "SUPABASE_URL"),
    )
    supabase_anon_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MIXINGDESK_SUPABASE_ANON_KEY", "SUPABASE_ANON_KEY"),
    )
    image_bucket: str = "test-images"
    store_timeout: float = 10.0

    # Agentic loop
    max_tool_rounds: int = 10
    tool_timeout: float = 30.0
    tool_max_retries: int = 0

    # Apply add-note / end-session markers to the visit store after each turn
    apply_visit_actions: bool = False

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="MIXINGDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    def llm_configuration_errors(self) -> list[str]:
        """Describe missing LLM credentials."""
        if self.llm_provider == "anthropic" and not self.anthropic_api_key:
            return ["ANTHROPIC_API_KEY not configured"]
        if self.llm_provider == "openai" and not self.openai_api_key:
            return ["OPENAI_API_KEY not configured"]
        if self.llm_provider not in ("anthropic", "openai"):
            return [f"Unknown LLM provider: {self.llm_provider}"]
        return []

    def store_configuration_errors(self) -> list[str]:
        """Describe missing content store credentials."""
        if not self.supabase_url or not self.supabase_anon_key:
            return ["Supabase credentials not configured"]
        return []

    def loop_configuration_errors(self) -> list[str]:
        """Describe agentic-loop limits the loop cannot run with."""
        if self.max_tool_rounds < 1:
            return [f"MIXINGDESK_MAX_TOOL_ROUNDS must be at least 1, got {self.max_tool_rounds}"]
        return []

    def configuration_errors(self) -> list[str]:
        """Every setting problem that prevents processing a chat turn."""
        return (
            self.llm_configuration_errors()
            + self.store_configuration_errors()
            + self.loop_configuration_errors()
        )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
