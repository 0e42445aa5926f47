"""Configuration settings for the application."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Pydantic settings class for the application.

    An instance is built once by the entry point and handed to each component; components never
    read the environment themselves.
    """

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    CORS_ORIGINS: List[str] = ["http://localhost:3001", "http://127.0.0.1:3001"]

    # LLM Configuration
    LLM_PROVIDER: str = "anthropic"  # Options: anthropic, openai
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-sonnet-latest"
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    LLM_TIMEOUT: float = 120.0

    # Web search (Exa)
    EXA_API_KEY: str | None = None
    EXA_BASE_URL: str = "https://api.exa.ai/search"
    SEARCH_TIMEOUT: float = 30.0

    # Execution
    TOOL_API_TIMEOUT: float = 30.0
    TEST_CASE_TIMEOUT_SCALE: float = 1.0  # multiplies the per-case test timeouts

    # In-memory stores of the HTTP surface; least recently used entries are evicted
    MAX_AGENTS: int = 500
    MAX_SESSIONS: int = 1000

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"
