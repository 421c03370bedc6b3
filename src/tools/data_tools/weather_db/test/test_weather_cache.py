"""Unit tests for the store-backed weather cache."""

import asyncio
import sqlite3
from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import NOW
from src.tools.data_tools.weather_db.cache import (
    FRESHNESS_WINDOWS_HOURS,
    WeatherCache,
    freshness_window,
)
from src.tools.data_tools.weather_db.models import AuxiliaryKey, LocationKey, ReportType


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class CountingFetch:
    def __init__(self, payload):
        self.payload = payload
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.payload


KEY = LocationKey.for_city('Hà Nội, Vietnam')


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def cache(weather_db, clock):
    return WeatherCache(weather_db, now_func=clock)


class TestFreshness:
    """Tests for freshness windows."""

    def test_windows(self):
        assert freshness_window(ReportType.CURRENT) == timedelta(hours=1)
        assert freshness_window(ReportType.MARINE) == timedelta(hours=6)
        assert freshness_window(ReportType.SEVEN_DAY_FORECAST) == timedelta(hours=3)

    def test_subscriptions_are_not_cacheable(self):
        with pytest.raises(ValueError):
            freshness_window(ReportType.ALERT_SUBSCRIPTION)


class TestGetOrFetch:
    """Tests for the hit/miss decision."""

    @pytest.mark.parametrize('report_type', list(FRESHNESS_WINDOWS_HOURS))
    def test_miss_fetches_once_and_stores_once(self, cache, weather_db, report_type):
        """An absent record costs one upstream call and one write."""
        fetch = CountingFetch({'value': 1})

        record, cached = asyncio.run(cache.get_or_fetch(report_type, KEY, AuxiliaryKey(), fetch))

        assert cached is False
        assert record.payload == {'value': 1}
        assert record.id is not None
        assert fetch.calls == 1
        assert weather_db.count_weather_records(report_type) == 1

    @pytest.mark.parametrize('report_type', list(FRESHNESS_WINDOWS_HOURS))
    def test_fresh_hit_skips_upstream(self, cache, weather_db, report_type):
        """A record inside the freshness window is served without fetching."""
        asyncio.run(cache.store(report_type, KEY, AuxiliaryKey(), {'value': 1}))
        fetch = CountingFetch({'value': 2})

        record, cached = asyncio.run(cache.get_or_fetch(report_type, KEY, AuxiliaryKey(), fetch))

        assert cached is True
        assert record.payload == {'value': 1}
        assert fetch.calls == 0
        assert weather_db.count_weather_records(report_type) == 1

    def test_repeat_request_returns_identical_payload(self, cache):
        fetch = CountingFetch({'current': {'temp_c': 30.1}})

        first, _ = asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, fetch))
        second, cached = asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, fetch))

        assert cached is True
        assert second.payload == first.payload
        assert fetch.calls == 1

    def test_expired_record_is_refetched(self, cache, clock, weather_db):
        asyncio.run(cache.store(ReportType.CURRENT, KEY, None, {'value': 'old'}))
        clock.now = NOW + timedelta(hours=1, minutes=1)
        fetch = CountingFetch({'value': 'new'})

        record, cached = asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, fetch))

        assert cached is False
        assert record.payload == {'value': 'new'}
        assert fetch.calls == 1
        assert weather_db.count_weather_records() == 2

    def test_concurrent_misses_both_persist(self, cache, weather_db):
        """Two identical concurrent misses both succeed and both write."""
        calls = []

        async def run_both():
            both_missed = asyncio.Barrier(2)

            async def fetch():
                calls.append(1)
                await asyncio.wait_for(both_missed.wait(), timeout=5)
                return {'value': 1}

            return await asyncio.gather(
                cache.get_or_fetch(ReportType.FORECAST, KEY, AuxiliaryKey(days=3), fetch),
                cache.get_or_fetch(ReportType.FORECAST, KEY, AuxiliaryKey(days=3), fetch),
            )

        results = asyncio.run(run_both())

        assert [cached for _, cached in results] == [False, False]
        assert len(calls) == 2
        assert weather_db.count_weather_records(ReportType.FORECAST) == 2

    def test_upstream_failure_propagates_without_write(self, cache, weather_db):
        async def failing():
            raise RuntimeError('upstream down')

        with pytest.raises(RuntimeError):
            asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, failing))
        assert weather_db.count_weather_records() == 0


class TestPersistenceFailures:
    """The store is an accelerator: its failures never fail the request."""

    def test_write_failure_still_returns_payload(self, cache, weather_db):
        fetch = CountingFetch({'value': 1})
        with patch.object(weather_db, 'insert_weather_record', side_effect=sqlite3.OperationalError('disk full')):
            record, cached = asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, fetch))

        assert cached is False
        assert record.payload == {'value': 1}
        assert record.id is None

    def test_read_failure_falls_through_to_upstream(self, cache, weather_db):
        fetch = CountingFetch({'value': 1})
        with patch.object(weather_db, 'find_latest_weather_record', side_effect=sqlite3.OperationalError('locked')):
            _, cached = asyncio.run(cache.get_or_fetch(ReportType.CURRENT, KEY, None, fetch))

        assert cached is False
        assert fetch.calls == 1
