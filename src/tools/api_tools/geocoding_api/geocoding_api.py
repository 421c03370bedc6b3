"""Geocoding Tool - Geoapify place search."""

import logging
from dataclasses import dataclass

import httpx

from observability import trace_tool
from src.tools.shared_libraries.errors import LocationNotFoundError
from src.tools.shared_libraries.helpers import dig, safe_float
from src.tools.shared_libraries.retry import RetryPolicy, get_json


logger = logging.getLogger(__name__)

GEOAPIFY_SEARCH_URL = 'https://api.geoapify.com/v1/geocode/search'
SEARCH_LIMIT = 10


@dataclass(frozen=True)
class Place:
    """A geocoded place. ``name`` is the canonical formatted address."""

    name: str
    lat: float
    lon: float
    city: str | None = None
    state: str | None = None
    country: str | None = None

    @property
    def query(self) -> str:
        """The ``lat,lon`` string sent upstream as ``q``."""
        return f'{self.lat},{self.lon}'

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'lat': self.lat,
            'lon': self.lon,
        }


class LocationResolver:
    """Turns free-text place names into coordinates and a canonical name."""

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

    @trace_tool(name='geoapify.search', capture_output=False)
    async def search(self, query: str) -> list[Place]:
        """Search places matching ``query``, best match first.

        Malformed features and features without coordinates are skipped.
        """
        data = await get_json(
            self._client,
            GEOAPIFY_SEARCH_URL,
            {
                'text': query,
                'lang': self.lang,
                'limit': SEARCH_LIMIT,
                'apiKey': self._api_key,
            },
            self.policy,
        )

        features = dig(data, 'features', default=[])
        if not isinstance(features, list):
            features = []

        places = []
        for feature in features:
            props = feature.get('properties') if isinstance(feature, dict) else None
            if not isinstance(props, dict):
                continue
            lat = safe_float(props.get('lat'))
            lon = safe_float(props.get('lon'))
            if lat is None or lon is None:
                continue
            places.append(Place(
                name=props.get('formatted') or query,
                lat=lat,
                lon=lon,
                city=props.get('city'),
                state=props.get('state'),
                country=props.get('country'),
            ))

        if not places:
            logger.info(f'No location found for: {query}')
        return places

    async def resolve(self, query: str) -> Place:
        """Return the best match for ``query``.

        Raises:
            LocationNotFoundError: Geocoding returned no usable result.
        """
        places = await self.search(query)
        if not places:
            raise LocationNotFoundError(f'Location not found: {query}')
        return places[0]
