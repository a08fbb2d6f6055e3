"""Weather lookup against the Open-Meteo forecast API."""
from typing import Any
import logging

import httpx

from app.core.errors import UpstreamGenerationFailure

logger = logging.getLogger(__name__)


async def fetch_weather(
    client: httpx.AsyncClient,
    url: str,
    latitude: float,
    longitude: float,
) -> dict[str, Any]:
    """
    Get the current and hourly temperature at a location.

    Raises:
        UpstreamGenerationFailure: If the weather API call fails
    """
    params = {
        "latitude": latitude,
        "longitude": longitude,
        "current": "temperature_2m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto",
    }
    try:
        response = await client.get(url, params=params)
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Weather lookup failed for ({latitude}, {longitude}): {str(e)}")
        raise UpstreamGenerationFailure(f"Weather lookup failed: {str(e)}") from e
    return response.json()
