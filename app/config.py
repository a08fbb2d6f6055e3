"""Application settings loaded from environment variables and `.env`."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Chat backend configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Database
    DATABASE_URL: str = "sqlite:///./avacyn.db"
    DATABASE_ECHO: bool = False

    # Model provider
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: Optional[str] = None
    OPENAI_TIMEOUT: float = 30.0
    TITLE_MODEL: str = "gpt-4o-mini"
    SEARCH_MODEL: str = "gpt-4-turbo"
    EXECUTION_MODEL: str = "gpt-4"

    # External tools
    TAVILY_API_KEY: Optional[str] = None
    TAVILY_URL: str = "https://api.tavily.com/search"
    WEATHER_URL: str = "https://api.open-meteo.com/v1/forecast"
    HTTP_TIMEOUT: float = 20.0

    # Turn processing
    MAX_STEPS: int = 5
    TURN_TIMEOUT: float = 60.0
    MAX_SUGGESTIONS: int = 5

    # Identity header set by the authentication gateway
    AUTH_USER_HEADER: str = "X-User-Id"

    LOG_LEVEL: str = "INFO"


settings = Settings()
