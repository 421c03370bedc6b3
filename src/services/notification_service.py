"""Notification service - weather alerts as notifications, and push subscriptions."""

import asyncio
import logging
from typing import Any

from observability import trace_span
from src.agents.alert_agent.alert_agent import (
    AlertAnalyst,
    alert_identifier,
    extract_alerts,
    to_notification,
)
from src.tools.api_tools.geocoding_api.geocoding_api import LocationResolver
from src.tools.api_tools.weather_api.weather_api import WeatherApiClient
from src.tools.data_tools.weather_db.cache import WeatherCache
from src.tools.data_tools.weather_db.models import AlertSubscription, AuxiliaryKey, ReportType
from src.tools.data_tools.weather_db.weather_db import WeatherDb
from src.tools.shared_libraries.errors import NotFoundError

from .weather_service import LocationQuery, WeatherReportService


logger = logging.getLogger(__name__)

DETAIL_SOURCE = 'weatherapi+gemini'


def filter_notifications(
    notifications: list[dict],
    severity: str | None = None,
    alert_type: str | None = None,
    area: str | None = None,
) -> list[dict]:
    """Apply the optional caller filters to normalized notifications.

    ``severity`` and ``alert_type`` match case-insensitively; ``area`` matches
    as a substring.
    """
    def matches(value: Any, expected: str | None, partial: bool = False) -> bool:
        if not expected:
            return True
        text = str(value or '').lower()
        return expected.lower() in text if partial else text == expected.lower()

    return [
        n for n in notifications
        if matches(n.get('severity'), severity)
        and matches(n.get('type'), alert_type)
        and matches(n.get('area'), area, partial=True)
    ]


class NotificationService:
    """Alert notifications, alert details and subscription management."""

    def __init__(
        self,
        db: WeatherDb,
        cache: WeatherCache,
        reports: WeatherReportService,
        weather_client: WeatherApiClient,
        location_resolver: LocationResolver,
        analyst: AlertAnalyst,
    ):
        self._db = db
        self._cache = cache
        self._reports = reports
        self._weather = weather_client
        self._locations = location_resolver
        self._analyst = analyst

    async def _fetch_notifications(self, q: str) -> dict[str, Any]:
        data = await self._weather.call(ReportType.ALERTS, {'q': q})
        alerts = extract_alerts(data)
        translated = await asyncio.gather(*(self._analyst.translate(alert) for alert in alerts))
        notifications = [
            to_notification(translated_alert, alert_identifier(alert))
            for alert, translated_alert in zip(alerts, translated)
        ]
        return {
            'alerts': notifications,
            'total': len(notifications),
            'location': data.get('location') if isinstance(data, dict) else None,
        }

    @trace_span('notifications.list')
    async def list_notifications(
        self,
        query: LocationQuery,
        severity: str | None = None,
        alert_type: str | None = None,
        area: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        """Return ``{alerts, total, location}`` and whether it came from the store.

        The unfiltered list is cached; filters are applied on every call.
        """
        location = await self._reports.resolve_location(query)
        record, cached = await self._cache.get_or_fetch(
            ReportType.NOTIFICATIONS,
            location.key,
            AuxiliaryKey(),
            lambda: self._fetch_notifications(location.q),
        )

        payload = record.payload
        if severity or alert_type or area:
            alerts = filter_notifications(payload.get('alerts') or [], severity, alert_type, area)
            payload = {**payload, 'alerts': alerts, 'total': len(alerts)}
        return payload, cached

    async def _fetch_detail(self, q: str, alert_id: str) -> dict[str, Any]:
        data = await self._weather.call(ReportType.ALERTS, {'q': q})
        alert = next(
            (a for a in extract_alerts(data) if alert_identifier(a) == alert_id),
            None,
        )
        if alert is None:
            raise NotFoundError(f'No alert found with id {alert_id}.')

        notification = to_notification(await self._analyst.translate(alert), alert_id)
        notification['additional_info'] = await self._analyst.analyze(notification)
        return notification

    @trace_span('notifications.detail')
    async def get_detail(self, query: LocationQuery, alert_id: str) -> tuple[dict[str, Any], bool]:
        """Return one alert with its analysis.

        Raises:
            NotFoundError: The location has no alert with ``alert_id``.
        """
        location = await self._reports.resolve_location(query)
        record, cached = await self._cache.get_or_fetch(
            ReportType.NOTIFICATION_DETAIL,
            location.key,
            AuxiliaryKey(alert_id=alert_id),
            lambda: self._fetch_detail(location.q, alert_id),
            source=DETAIL_SOURCE,
        )
        return record.payload, cached

    @trace_span('notifications.subscribe')
    async def subscribe(
        self,
        device_id: str,
        location: str,
        severity: str | None = None,
        types: list[str] | None = None,
        push_token: str | None = None,
    ) -> AlertSubscription:
        """Persist an active subscription for a geocoded location.

        Raises:
            LocationNotFoundError: ``location`` could not be geocoded.
        """
        place = await self._locations.resolve(location)
        subscription = AlertSubscription(
            device_id=device_id,
            push_token=push_token,
            location_name=place.name,
            latitude=place.lat,
            longitude=place.lon,
            severity_filter=severity,
            type_filters=list(types or []),
        )
        saved = await asyncio.to_thread(self._db.insert_subscription, subscription)
        logger.info(f'Device {device_id} subscribed to alerts for {place.name}')
        return saved

    @trace_span('notifications.unsubscribe')
    async def unsubscribe(self, device_id: str) -> int:
        """Deactivate every active subscription of a device.

        Raises:
            NotFoundError: The device has no active subscription.
        """
        count = await asyncio.to_thread(self._db.deactivate_subscriptions, device_id)
        if count == 0:
            raise NotFoundError('No active subscription found.')
        logger.info(f'Device {device_id} unsubscribed from {count} subscription(s)')
        return count
