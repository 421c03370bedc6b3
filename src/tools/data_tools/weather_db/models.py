"""Database models and schema for weather data storage."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class ReportType(str, Enum):
    """Kinds of weather records kept in the store."""

    CURRENT = 'current'
    FORECAST = 'forecast'
    FUTURE = 'future'
    MARINE = 'marine'
    ASTRONOMY = 'astronomy'
    TIMEZONE = 'timezone'
    ALERTS = 'alerts'
    HISTORY = 'history'
    SEVEN_DAY_FORECAST = 'sevenDayForecast'
    NOTIFICATIONS = 'notifications'
    NOTIFICATION_DETAIL = 'notificationDetail'
    # Kept in the alert_subscriptions table, never as a weather record.
    ALERT_SUBSCRIPTION = 'alertSubscription'


COORDINATE_PRECISION = 4

# Earliest date history reports are requested for.
HISTORY_FLOOR = date(2010, 1, 1)


@dataclass(frozen=True)
class LocationKey:
    """Cache discriminator: a canonical place name or a coordinate pair.

    Exactly one form is populated. Build instances through
    :meth:`for_city` or :meth:`for_coordinates`.
    """

    city: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    def __post_init__(self):
        has_city = self.city is not None
        has_coords = self.latitude is not None and self.longitude is not None
        if has_city == has_coords:
            raise ValueError('LocationKey needs exactly one of city or latitude/longitude')
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError('latitude and longitude must be given together')

    @classmethod
    def for_city(cls, city: str) -> 'LocationKey':
        return cls(city=city)

    @classmethod
    def for_coordinates(cls, latitude: float, longitude: float) -> 'LocationKey':
        return cls(
            latitude=round(float(latitude), COORDINATE_PRECISION),
            longitude=round(float(longitude), COORDINATE_PRECISION),
        )

    @property
    def is_coordinates(self) -> bool:
        return self.city is None

    def label(self) -> str:
        if self.city is not None:
            return self.city
        return f'{self.latitude},{self.longitude}'


@dataclass(frozen=True)
class AuxiliaryKey:
    """Report-specific discriminators (``days``, ``date``, ``alert_id``)."""

    days: int | None = None
    date: str | None = None
    alert_id: str | None = None


@dataclass(frozen=True)
class WeatherRecord:
    """One persisted snapshot of a single report for one place/time window."""

    report_type: ReportType
    location_key: LocationKey
    auxiliary_key: AuxiliaryKey
    fetched_at: datetime
    payload: Any
    source: str = 'weatherapi'
    id: int | None = None


@dataclass(frozen=True)
class ChatRecord:
    """One question/answer exchange of a chat session."""

    question: str
    answer: str
    session_id: str
    resolved_intent: dict | None
    weather_snapshot: dict | None
    created_at: datetime
    id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'sessionId': self.session_id,
            'question': self.question,
            'answer': self.answer,
            'resolvedIntent': self.resolved_intent,
            'weatherSnapshot': self.weather_snapshot,
            'timestamp': self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class AlertSubscription:
    """A device's opt-in to push notifications for a location."""

    device_id: str
    push_token: str | None
    location_name: str
    latitude: float | None
    longitude: float | None
    severity_filter: str | None
    type_filters: list[str] = field(default_factory=list)
    active: bool = True
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'deviceId': self.device_id,
            'location': self.location_name,
            'severity': self.severity_filter,
            'types': self.type_filters,
            'active': self.active,
        }


# SQLite schema definitions
SCHEMA_SQL = """
-- Cached upstream responses, one row per fetch
CREATE TABLE IF NOT EXISTS weather_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    report_type TEXT NOT NULL,
    city TEXT,
    latitude REAL,
    longitude REAL,
    days INTEGER,
    date TEXT,
    alert_id TEXT,
    source TEXT NOT NULL,
    fetched_at TEXT NOT NULL,
    payload_json TEXT NOT NULL
);

-- Chat question/answer history
CREATE TABLE IF NOT EXISTS chat_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL,
    question TEXT NOT NULL,
    answer TEXT NOT NULL,
    resolved_intent_json TEXT,
    weather_snapshot_json TEXT,
    created_at TEXT NOT NULL
);

-- Push notification subscriptions (soft-deleted through ``active``)
CREATE TABLE IF NOT EXISTS alert_subscriptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT NOT NULL,
    push_token TEXT,
    location_name TEXT NOT NULL,
    latitude REAL,
    longitude REAL,
    severity TEXT,
    types_json TEXT,
    active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Indexes for the cache lookup and history queries
CREATE INDEX IF NOT EXISTS idx_weather_records_lookup
    ON weather_records(report_type, city, latitude, longitude, fetched_at);
CREATE INDEX IF NOT EXISTS idx_chat_records_session
    ON chat_records(session_id, created_at);
CREATE INDEX IF NOT EXISTS idx_alert_subscriptions_device
    ON alert_subscriptions(device_id, active);
"""
