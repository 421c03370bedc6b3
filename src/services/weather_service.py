"""Weather report service - location resolution, cache lookup and upstream fetch."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from observability import trace_span
from src.agents.forecast_agent.seven_day import SOURCE as SEVEN_DAY_SOURCE
from src.agents.forecast_agent.seven_day import SevenDayForecaster
from src.tools.api_tools.geocoding_api.geocoding_api import LocationResolver, Place
from src.tools.api_tools.weather_api.weather_api import WeatherApiClient
from src.tools.data_tools.weather_db.cache import WeatherCache
from src.tools.data_tools.weather_db.models import AuxiliaryKey, LocationKey, ReportType
from src.tools.shared_libraries.errors import ServiceNotConfiguredError
from src.tools.shared_libraries.helpers import utcnow


logger = logging.getLogger(__name__)

DEFAULT_FORECAST_DAYS = 3


@dataclass(frozen=True)
class LocationQuery:
    """Validated caller location: a place name or a coordinate pair."""

    name: str | None = None
    lat: float | None = None
    lon: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class ResolvedLocation:
    """A location ready for the cache key and the upstream ``q`` parameter."""

    key: LocationKey
    q: str
    place: Place | None = None

    @property
    def label(self) -> str:
        return self.place.name if self.place else self.key.label()

    @property
    def lat(self) -> float:
        return self.place.lat if self.place else self.key.latitude

    @property
    def lon(self) -> float:
        return self.place.lon if self.place else self.key.longitude


def upstream_params(
    report_type: ReportType,
    q: str,
    days: int | None = None,
    on: str | None = None,
) -> dict[str, Any]:
    """Query parameters for one WeatherAPI.com report."""
    params: dict[str, Any] = {'q': q}
    if report_type in (ReportType.CURRENT, ReportType.FUTURE):
        params['aqi'] = 'yes'
    elif report_type == ReportType.FORECAST:
        params.update(days=days or DEFAULT_FORECAST_DAYS, aqi='yes')
    elif report_type == ReportType.MARINE:
        params['tides'] = 'yes'
    if report_type in (ReportType.FUTURE, ReportType.ASTRONOMY, ReportType.HISTORY):
        params['dt'] = on
    return params


class WeatherReportService:
    """Serves the direct weather endpoints through the store-backed cache."""

    def __init__(
        self,
        cache: WeatherCache,
        weather_client: WeatherApiClient,
        location_resolver: LocationResolver,
        forecaster: SevenDayForecaster,
        today_func: Callable[[], date] | None = None,
    ):
        self._cache = cache
        self._weather = weather_client
        self._locations = location_resolver
        self._forecaster = forecaster
        self._today = today_func or (lambda: utcnow().date())

    async def resolve_location(self, query: LocationQuery) -> ResolvedLocation:
        """Coordinates are used verbatim; names go through geocoding.

        Raises:
            LocationNotFoundError: Geocoding returned no result for the name.
        """
        if query.has_coordinates:
            return ResolvedLocation(
                key=LocationKey.for_coordinates(query.lat, query.lon),
                q=f'{query.lat},{query.lon}',
            )
        place = await self._locations.resolve(query.name)
        logger.info(f'Resolved {query.name} to {place.name} ({place.query})')
        return ResolvedLocation(key=LocationKey.for_city(place.name), q=place.query, place=place)

    @trace_span('weather.get_report')
    async def get_report(
        self,
        report_type: ReportType,
        query: LocationQuery,
        days: int | None = None,
        on: str | None = None,
    ) -> tuple[Any, bool]:
        """Return a report payload and whether it was served from the store.

        Args:
            report_type: One of the eight WeatherAPI.com report types.
            query: Validated location.
            days: Forecast length (forecast only).
            on: ISO date (future, astronomy, history). Astronomy defaults to
                today.
        """
        if report_type == ReportType.FORECAST:
            days = days or DEFAULT_FORECAST_DAYS
            auxiliary_key = AuxiliaryKey(days=days)
        elif report_type in (ReportType.FUTURE, ReportType.ASTRONOMY, ReportType.HISTORY):
            if on is None and report_type == ReportType.ASTRONOMY:
                on = self._today().isoformat()
            auxiliary_key = AuxiliaryKey(date=on)
        else:
            auxiliary_key = AuxiliaryKey()

        location = await self.resolve_location(query)
        params = upstream_params(report_type, location.q, days=days, on=on)

        record, cached = await self._cache.get_or_fetch(
            report_type,
            location.key,
            auxiliary_key,
            lambda: self._weather.call(report_type, params),
        )
        return record.payload, cached

    @trace_span('weather.get_seven_day_forecast')
    async def get_seven_day_forecast(self, query: LocationQuery) -> tuple[dict, bool]:
        """Return the seven-day payload and whether it was served from the store.

        Raises:
            ServiceNotConfiguredError: No OpenWeatherMap key is configured.
        """
        if not self._forecaster.configured:
            raise ServiceNotConfiguredError('OpenWeatherMap API key is not configured.')

        location = await self.resolve_location(query)
        record, cached = await self._cache.get_or_fetch(
            ReportType.SEVEN_DAY_FORECAST,
            location.key,
            AuxiliaryKey(),
            lambda: self._forecaster.build(lat=location.lat, lon=location.lon),
            source=SEVEN_DAY_SOURCE,
        )
        return record.payload, cached
