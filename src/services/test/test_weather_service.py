"""Unit tests for the weather report service."""

import asyncio

import pytest

from conftest import NOW, TODAY
from src.services.weather_service import LocationQuery, WeatherReportService, upstream_params
from src.tools.data_tools.weather_db.cache import WeatherCache
from src.tools.data_tools.weather_db.models import AuxiliaryKey, LocationKey, ReportType
from src.tools.shared_libraries.errors import LocationNotFoundError, ServiceNotConfiguredError


class FakeForecaster:
    def __init__(self, configured=True):
        self.configured = configured
        self.calls = []

    async def build(self, lat=None, lon=None, city=None):
        self.calls.append((lat, lon, city))
        return {'forecast': [], 'notice': 'five days'}


@pytest.fixture
def cache(weather_db):
    return WeatherCache(weather_db, now_func=lambda: NOW)


@pytest.fixture
def forecaster():
    return FakeForecaster()


@pytest.fixture
def service(cache, weather_client, location_resolver, forecaster):
    return WeatherReportService(
        cache, weather_client, location_resolver, forecaster, today_func=lambda: TODAY,
    )


class TestUpstreamParams:
    def test_per_report_flags(self):
        assert upstream_params(ReportType.CURRENT, 'x') == {'q': 'x', 'aqi': 'yes'}
        assert upstream_params(ReportType.FORECAST, 'x', days=5) == {'q': 'x', 'days': 5, 'aqi': 'yes'}
        assert upstream_params(ReportType.MARINE, 'x') == {'q': 'x', 'tides': 'yes'}
        assert upstream_params(ReportType.HISTORY, 'x', on='2024-06-01') == {'q': 'x', 'dt': '2024-06-01'}
        assert upstream_params(ReportType.TIMEZONE, 'x') == {'q': 'x'}


class TestGetReport:
    """Tests for WeatherReportService.get_report."""

    def test_named_location_is_geocoded_and_cached_by_city(self, service, weather_client,
                                                            location_resolver, weather_db):
        payload, cached = asyncio.run(service.get_report(ReportType.CURRENT, LocationQuery(name='Hanoi')))

        assert cached is False
        assert location_resolver.searches == ['Hanoi']
        assert weather_client.calls == [(ReportType.CURRENT, {'q': '21.03,105.85', 'aqi': 'yes'})]
        assert payload == {'report': 'current', 'q': '21.03,105.85'}
        stored = weather_db.find_latest_weather_record(
            ReportType.CURRENT, LocationKey.for_city('Hà Nội, Vietnam'), AuxiliaryKey(), NOW,
        )
        assert stored is not None

    def test_second_request_is_served_from_store(self, service, weather_client):
        query = LocationQuery(name='Hanoi')
        first, _ = asyncio.run(service.get_report(ReportType.CURRENT, query))
        second, cached = asyncio.run(service.get_report(ReportType.CURRENT, query))

        assert cached is True
        assert second == first
        assert len(weather_client.calls) == 1

    def test_coordinates_skip_geocoding(self, service, weather_client, location_resolver):
        asyncio.run(service.get_report(ReportType.MARINE, LocationQuery(lat=10.5, lon=106.7)))

        assert location_resolver.searches == []
        assert weather_client.calls == [(ReportType.MARINE, {'q': '10.5,106.7', 'tides': 'yes'})]

    def test_unknown_location_makes_no_weather_call(self, service, weather_client):
        with pytest.raises(LocationNotFoundError):
            asyncio.run(service.get_report(ReportType.CURRENT, LocationQuery(name='Atlantis')))
        assert weather_client.calls == []

    def test_forecast_days_are_part_of_the_key(self, service, weather_client):
        query = LocationQuery(name='Hanoi')
        asyncio.run(service.get_report(ReportType.FORECAST, query))
        asyncio.run(service.get_report(ReportType.FORECAST, query, days=3))
        asyncio.run(service.get_report(ReportType.FORECAST, query, days=7))

        assert [params['days'] for _, params in weather_client.calls] == [3, 7]

    def test_astronomy_defaults_to_today(self, service, weather_client):
        asyncio.run(service.get_report(ReportType.ASTRONOMY, LocationQuery(name='Hanoi')))
        assert weather_client.calls[0][1]['dt'] == '2024-06-15'


class TestSevenDayForecast:
    """Tests for WeatherReportService.get_seven_day_forecast."""

    def test_uses_place_coordinates(self, service, forecaster):
        payload, cached = asyncio.run(service.get_seven_day_forecast(LocationQuery(name='Hanoi')))

        assert cached is False
        assert payload['notice'] == 'five days'
        assert forecaster.calls == [(21.03, 105.85, None)]

        _, cached = asyncio.run(service.get_seven_day_forecast(LocationQuery(name='Hanoi')))
        assert cached is True
        assert len(forecaster.calls) == 1

    def test_not_configured(self, service, forecaster, location_resolver):
        forecaster.configured = False
        with pytest.raises(ServiceNotConfiguredError):
            asyncio.run(service.get_seven_day_forecast(LocationQuery(name='Hanoi')))
        assert location_resolver.searches == []
