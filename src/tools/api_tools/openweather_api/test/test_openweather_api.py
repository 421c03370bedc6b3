"""Unit tests for the OpenWeatherMap client."""

import asyncio

import httpx
import pytest

from src.tools.api_tools.openweather_api.openweather_api import OpenWeatherClient
from src.tools.shared_libraries.errors import ServiceNotConfiguredError
from src.tools.shared_libraries.retry import RetryPolicy


def run_forecast(handler, api_key='owm_key', **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            openweather = OpenWeatherClient(client, api_key, lang='vi', policy=RetryPolicy(delay=0))
            return await openweather.get_forecast(**kwargs)

    return asyncio.run(go())


class TestOpenWeatherClient:
    """Tests for OpenWeatherClient.get_forecast."""

    def test_forecast_by_coordinates(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'list': []})

        assert run_forecast(handler, lat=21.03, lon=105.85) == {'list': []}
        params = seen[0].url.params
        assert params['lat'] == '21.03'
        assert params['lon'] == '105.85'
        assert params['appid'] == 'owm_key'
        assert params['units'] == 'metric'
        assert 'q' not in params

    def test_forecast_by_name(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'list': []})

        run_forecast(handler, city='Hue')
        assert seen[0].url.params['q'] == 'Hue'

    def test_unconfigured_key(self):
        def handler(request):
            raise AssertionError('no request expected')

        with pytest.raises(ServiceNotConfiguredError):
            run_forecast(handler, api_key=None, city='Hue')
