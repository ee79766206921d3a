"""
Configuration Management Module

Configures gateway parameters via environment variables or .env file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    List fields accept a JSON array, e.g. SMART_ROUTING_RESPONSES_MODELS='["claude-3-opus"]'.
    """

    # Application Config
    APP_NAME: str = "Dialect Gateway"
    DEBUG: bool = False

    # HTTP Client Config
    # Request timeout (seconds)
    HTTP_TIMEOUT: int = 1800

    # Upstream Channels
    # Responses-style backend (only serves /v1/responses)
    RESPONSES_BASE_URL: str = "https://api.openai.com/v1"
    RESPONSES_API_KEY: str | None = None
    # Chat-Completions-style backend used for native chat handling
    CHAT_BASE_URL: str = "https://api.openai.com/v1"
    CHAT_API_KEY: str | None = None
    # Messages-style backend used for native messages handling
    MESSAGES_BASE_URL: str = "https://api.anthropic.com/v1"
    MESSAGES_API_KEY: str | None = None
    # anthropic-version header sent to the Messages backend when the client omits it
    MESSAGES_API_VERSION: str = "2023-06-01"

    # Models served by the Responses channel; chat requests for these are translated
    RESPONSES_CHANNEL_MODELS: list[str] = [
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4.1",
        "o1",
        "o1-mini",
        "o1-preview",
        "gpt-4",
        "gpt-4-turbo",
        "gpt-3.5-turbo",
    ]

    # Smart Routing Config
    # Route messages-style requests for the listed models to the Responses channel
    SMART_ROUTING_ENABLED: bool = True
    SMART_ROUTING_RESPONSES_MODELS: list[str] = [
        "claude-3.5-sonnet",
        "claude-3-opus",
        "claude-3-haiku",
    ]
    # Serve the request natively when translation fails instead of returning the error
    SMART_ROUTING_FALLBACK_ON_ERROR: bool = True

    # Token Counting
    # tiktoken encoding used when the model has no known encoding
    DEFAULT_TOKENIZER_ENCODING: str = "cl100k_base"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get application configuration (Singleton)

    Uses lru_cache to ensure configuration is loaded only once.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
