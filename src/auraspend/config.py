"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = True
    DATA_DIR: str = "./data"
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical
    # Front-end origins allowed to call the API (JSON list in the environment)
    CORS_ORIGINS: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    # Model client configuration
    CHAT_CLIENT: str = "openai"  # Options: openai, anthropic, http
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: str | None = None
    ANTHROPIC_API_KEY: str | None = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    ANTHROPIC_MAX_TOKENS: int = 4096
    CHAT_ENDPOINT: str = "http://localhost:1234/v1/chat/completions"
    CHAT_API_KEY: str | None = None
    CHAT_MODEL: str = "local-model"
    REQUEST_TIMEOUT: float = 60.0

    # Conversation behaviour
    TEMPERATURE: float = 0.7
    CHAIN_MAX_TOKENS: int = 500
    USER_LANGUAGE: str | None = None
    CHAT_STORE_NAME: str = "chatMessages"

    # Outgoing message rate limit (seconds / calls)
    RATE_LIMIT_WINDOW: float = 10.0
    RATE_LIMIT_MAX_CALLS: int = 5
    RATE_LIMIT_COOLDOWN: float = 1.0

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
