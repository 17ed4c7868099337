"""Application settings loaded from the environment."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration for the chat gateway and chatbot service."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    ENVIRONMENT: str = "development"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # JSON array of users allowed to authenticate, loaded at startup
    USERS_FILE: Optional[str] = None

    # Realtime chat
    CHAT_NAMESPACE: str = "/chat"
    CORS_ORIGINS: List[str] = ["*"]

    # Chatbot
    API_PREFIX: str = "/api"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"
    TEMPERATURE: float = 0.7
    MAX_OUTPUT_TOKENS: int = 1000
    MAX_CONVERSATION_HISTORY: int = 10

    # 20 messages per 10 minutes per user or client address
    MESSAGE_RATE_LIMIT: int = 20
    MESSAGE_RATE_WINDOW: int = 600

    REQUEST_TIMEOUT: float = 30.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
