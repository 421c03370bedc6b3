"""OpenWeatherMap Tool - 5-day / 3-hour forecast."""

from typing import Any

import httpx

from observability import trace_tool
from src.tools.shared_libraries.errors import ServiceNotConfiguredError
from src.tools.shared_libraries.retry import RetryPolicy, get_json


OPENWEATHER_FORECAST_URL = 'https://api.openweathermap.org/data/2.5/forecast'


class OpenWeatherClient:
    """Secondary forecast provider used by the seven-day forecast."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None,
        lang: str = 'en',
        units: str = 'metric',
        policy: RetryPolicy | None = None,
    ):
        self._client = client
        self._api_key = api_key
        self.lang = lang
        self.units = units
        self.policy = policy or RetryPolicy()

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @trace_tool(name='openweather.forecast', capture_output=False)
    async def get_forecast(
        self,
        lat: float | None = None,
        lon: float | None = None,
        city: str | None = None,
    ) -> dict[str, Any]:
        """Get the 5-day forecast in 3-hour buckets by coordinates or by name.

        Raises:
            ServiceNotConfiguredError: No OpenWeatherMap key is configured.
        """
        if not self.configured:
            raise ServiceNotConfiguredError('OpenWeatherMap API key is not configured.')

        if lat is not None and lon is not None:
            location_params = {'lat': lat, 'lon': lon}
        else:
            location_params = {'q': city}

        return await get_json(
            self._client,
            OPENWEATHER_FORECAST_URL,
            {
                **location_params,
                'appid': self._api_key,
                'units': self.units,
                'lang': self.lang,
            },
            self.policy,
        )
