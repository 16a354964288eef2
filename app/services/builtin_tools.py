"""Built-in tools available in every chat."""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from app.infra.error_handler import ToolArgumentsError, wrap_http_error
from app.models.tool import Tool
from app.services.tool_wrapper import decode_arguments

logger = logging.getLogger(__name__)

OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
WEATHER_TIMEOUT = 10.0


class WeatherArgs(BaseModel):
    latitude: float = Field(..., description="Latitude of the location")
    longitude: float = Field(..., description="Longitude of the location")


async def get_weather(raw_args: Any, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    """Current weather, hourly temperature and sunrise/sunset for a location."""
    try:
        args = WeatherArgs.model_validate(decode_arguments(raw_args))
    except ValidationError as e:
        raise ToolArgumentsError(f"Invalid getWeather arguments: {e}")

    params = {
        "latitude": args.latitude,
        "longitude": args.longitude,
        "current": "temperature_2m",
        "hourly": "temperature_2m",
        "daily": "sunrise,sunset",
        "timezone": "auto",
    }
    try:
        async with httpx.AsyncClient(timeout=WEATHER_TIMEOUT, transport=transport) as client:
            response = await client.get(OPEN_METEO_URL, params=params)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        logger.warning(f"Weather lookup failed: {e}")
        raise wrap_http_error(e, "open-meteo")


def get_builtin_tools() -> Dict[str, Tool]:
    """Return the built-in tools keyed by the name the model sees."""
    return {
        "getWeather": Tool(
            description="Get the current weather at a location",
            parameters=WeatherArgs.model_json_schema(),
            execute=get_weather,
            source="builtin",
        ),
    }
