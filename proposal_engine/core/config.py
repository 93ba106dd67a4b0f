"""Configuration management for the Proposal Intelligence Engine."""

from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    PROPOSAL_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = Field(
        default=None, description="Overrides the per-environment log level"
    )

    # Provider credentials (all optional: a missing key means "not configured")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    GEMINI_API_KEY: str | None = Field(default=None, description="Google Gemini API key")
    GEMINI_BASE_URL: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini REST base URL",
    )
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")

    # Default model per provider
    CLAUDE_MODEL: str = Field(default="claude-sonnet-4-20250514", description="Default Claude model")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash", description="Default Gemini model")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini", description="Default OpenAI model")

    # Model routing
    MODEL_MAX_TOKENS: int = Field(default=4096, description="Max output tokens per provider call")
    MODEL_CALL_TIMEOUT: float = Field(
        default=60.0, description="Seconds before a provider call counts as failed"
    )
    MODEL_FALLBACK_ORDER: list[str] = Field(
        default_factory=lambda: ["claude", "gemini", "openai"],
        description="Provider preference order used for defaults and fallback",
    )

    # Website enrichment
    WEBSITE_FETCH_TIMEOUT: float = Field(default=10.0, description="Website fetch timeout in seconds")
    SCRAPER_USER_AGENT: str = Field(
        default="Mozilla/5.0 (compatible; ProposalBot/1.0)",
        description="User-Agent sent when fetching merchant websites",
    )

    # Pipeline behavior
    HALT_ON_VALIDATION_ERRORS: bool = Field(
        default=False,
        description="Stop the pipeline when the validate stage records errors",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance
    """
    return Settings()
