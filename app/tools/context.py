"""Per-turn dependencies handed to tool bodies."""
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from sqlmodel import Session

from app.ai.provider import ModelProvider
from app.services.stream import DataStream
from app.tools.search_engine import TavilySearchClient


@dataclass
class ToolContext:
    """
    Everything a tool needs while one turn is running.

    Built once per turn; nothing here is shared with other turns except the
    process-wide clients.
    """
    stream: DataStream
    provider: ModelProvider
    model: str
    session_factory: Callable[[], Session]
    user_id: Optional[str] = None
    http_client: Optional[httpx.AsyncClient] = None
    search_client: Optional[TavilySearchClient] = None
    search_model: str = "gpt-4-turbo"
    weather_url: str = "https://api.open-meteo.com/v1/forecast"
    max_suggestions: int = 5
