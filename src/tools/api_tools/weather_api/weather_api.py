"""Weather API Tool - WeatherAPI.com integration."""

import logging
from typing import Any

import httpx

from observability import trace_tool
from src.tools.data_tools.weather_db.models import ReportType
from src.tools.shared_libraries.retry import RetryPolicy, get_json


logger = logging.getLogger(__name__)

WEATHER_API_BASE = 'http://api.weatherapi.com/v1'

ENDPOINTS: dict[ReportType, str] = {
    ReportType.CURRENT: f'{WEATHER_API_BASE}/current.json',
    ReportType.FORECAST: f'{WEATHER_API_BASE}/forecast.json',
    ReportType.FUTURE: f'{WEATHER_API_BASE}/future.json',
    ReportType.HISTORY: f'{WEATHER_API_BASE}/history.json',
    ReportType.MARINE: f'{WEATHER_API_BASE}/marine.json',
    ReportType.ASTRONOMY: f'{WEATHER_API_BASE}/astronomy.json',
    ReportType.TIMEZONE: f'{WEATHER_API_BASE}/timezone.json',
    ReportType.ALERTS: f'{WEATHER_API_BASE}/alerts.json',
}


class WeatherApiClient:
    """Typed wrapper over the eight WeatherAPI.com report endpoints.

    Every request carries the service key and the configured language tag.
    Failures surface as ``UpstreamTransportError`` or
    ``UpstreamApplicationError`` after ``policy`` is applied.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        lang: str = 'en',
        policy: RetryPolicy | None = None,
    ):
        self._client = client
        self._api_key = api_key
        self.lang = lang
        self.policy = policy or RetryPolicy()

    @trace_tool(name='weatherapi.call', capture_input=False, capture_output=False)
    async def call(self, report_type: ReportType, params: dict[str, Any]) -> Any:
        """Fetch one report.

        Args:
            report_type: One of the eight upstream report types.
            params: Caller parameters (``q``, ``days``, ``dt``, ``aqi``,
                ``tides``...). ``None`` values are dropped.

        Returns:
            The decoded JSON payload.
        """
        try:
            url = ENDPOINTS[report_type]
        except KeyError:
            raise ValueError(f'{report_type.value} is not a WeatherAPI.com report') from None

        logger.debug(f'Calling WeatherAPI.com {report_type.value} with {params}')
        return await get_json(
            self._client,
            url,
            {'key': self._api_key, 'lang': self.lang, **params},
            self.policy,
        )
