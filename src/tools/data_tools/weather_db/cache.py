"""Store-backed cache for upstream weather reports.

The persistent store is the only cache layer. It is a pure accelerator: read
and write failures are logged and degrade to "always call upstream", never to
a failed request.
"""

import asyncio
import logging
import sqlite3
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any

from src.tools.shared_libraries.helpers import utcnow

from .models import AuxiliaryKey, LocationKey, ReportType, WeatherRecord
from .weather_db import WeatherDb


logger = logging.getLogger(__name__)

# Hours a record may age before it is re-fetched.
FRESHNESS_WINDOWS_HOURS: dict[ReportType, int] = {
    ReportType.CURRENT: 1,
    ReportType.FORECAST: 3,
    ReportType.FUTURE: 24,
    ReportType.MARINE: 6,
    ReportType.ASTRONOMY: 24,
    ReportType.TIMEZONE: 24,
    ReportType.ALERTS: 1,
    ReportType.HISTORY: 24,
    ReportType.SEVEN_DAY_FORECAST: 3,
    ReportType.NOTIFICATIONS: 1,
    ReportType.NOTIFICATION_DETAIL: 1,
}


def freshness_window(report_type: ReportType) -> timedelta:
    try:
        return timedelta(hours=FRESHNESS_WINDOWS_HOURS[report_type])
    except KeyError:
        raise ValueError(f'{report_type.value} records are not cacheable') from None


class WeatherCache:
    """Decides between serving a stored record and calling upstream."""

    def __init__(self, db: WeatherDb, now_func: Callable[[], datetime] = utcnow):
        self._db = db
        self._now = now_func

    async def lookup(
        self,
        report_type: ReportType,
        location_key: LocationKey,
        auxiliary_key: AuxiliaryKey | None = None,
    ) -> WeatherRecord | None:
        """Return the newest fresh record for the key, or None."""
        auxiliary_key = auxiliary_key or AuxiliaryKey()
        since = self._now() - freshness_window(report_type)
        try:
            return await asyncio.to_thread(
                self._db.find_latest_weather_record,
                report_type,
                location_key,
                auxiliary_key,
                since,
            )
        except (sqlite3.Error, OSError, ValueError) as e:
            logger.error(f'Cache lookup failed for {report_type.value} {location_key.label()}: {e}')
            return None

    async def store(
        self,
        report_type: ReportType,
        location_key: LocationKey,
        auxiliary_key: AuxiliaryKey | None,
        payload: Any,
        source: str = 'weatherapi',
    ) -> WeatherRecord:
        """Persist a freshly fetched payload.

        Always returns a record; when the write fails the record is returned
        unsaved (``id`` is None).
        """
        record = WeatherRecord(
            report_type=report_type,
            location_key=location_key,
            auxiliary_key=auxiliary_key or AuxiliaryKey(),
            fetched_at=self._now(),
            payload=payload,
            source=source,
        )
        try:
            record_id = await asyncio.to_thread(self._db.insert_weather_record, record)
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error(f'Cache write failed for {report_type.value} {location_key.label()}: {e}')
            return record
        return replace(record, id=record_id)

    async def get_or_fetch(
        self,
        report_type: ReportType,
        location_key: LocationKey,
        auxiliary_key: AuxiliaryKey | None,
        fetch: Callable[[], Awaitable[Any]],
        source: str = 'weatherapi',
    ) -> tuple[WeatherRecord, bool]:
        """Serve from the store or call ``fetch`` once and store the result.

        Returns:
            The record and whether it came from the store.
        """
        cached = await self.lookup(report_type, location_key, auxiliary_key)
        if cached is not None:
            logger.info(f'Retrieved {report_type.value} for {location_key.label()} from database')
            return cached, True

        logger.info(f'Fetching {report_type.value} for {location_key.label()} from API')
        payload = await fetch()
        record = await self.store(report_type, location_key, auxiliary_key, payload, source=source)
        return record, False
