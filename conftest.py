"""Shared pytest fixtures: a temporary store and fakes for the external services."""

from datetime import date, datetime, timezone

import pytest

from src.tools.api_tools.geocoding_api.geocoding_api import Place
from src.tools.data_tools.weather_db.weather_db import WeatherDb
from src.tools.shared_libraries.errors import LocationNotFoundError


TODAY = date(2024, 6, 15)
NOW = datetime(2024, 6, 15, 8, 0, tzinfo=timezone.utc)

HANOI = Place(
    name='Hà Nội, Vietnam',
    lat=21.03,
    lon=105.85,
    city='Hà Nội',
    country='Vietnam',
)


class FakeLLM:
    """Stands in for ``GenerativeClient``; replies are consumed in order.

    A reply that is an exception instance is raised instead of returned.
    When replies run out, the last one repeats.
    """

    def __init__(self, *replies):
        self.replies = list(replies) or [RuntimeError('no model')]
        self.prompts = []
        self.reinitialized = 0

    async def generate(self, prompt):
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def reinitialize(self):
        self.reinitialized += 1


class FakeWeatherClient:
    """Stands in for ``WeatherApiClient``, keyed by report type."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    async def call(self, report_type, params):
        self.calls.append((report_type, dict(params)))
        response = self.responses.get(report_type, {'report': report_type.value, 'q': params.get('q')})
        if isinstance(response, Exception):
            raise response
        return response


class FakeLocationResolver:
    """Stands in for ``LocationResolver`` with a fixed gazetteer."""

    def __init__(self, places=None):
        self.places = dict(places or {})
        self.searches = []

    async def search(self, query):
        self.searches.append(query)
        place = self.places.get(query.lower())
        return [place] if place else []

    async def resolve(self, query):
        places = await self.search(query)
        if not places:
            raise LocationNotFoundError(f'Location not found: {query}')
        return places[0]


@pytest.fixture
def weather_db(tmp_path):
    return WeatherDb(str(tmp_path / 'weather.db'))


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def weather_client():
    return FakeWeatherClient()


@pytest.fixture
def location_resolver():
    return FakeLocationResolver({'hanoi': HANOI, 'hà nội': HANOI})
