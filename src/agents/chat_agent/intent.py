"""Structured intent of a weather question."""

import math
import re
from datetime import date, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.tools.data_tools.weather_db.models import HISTORY_FLOOR


IntentType = Literal[
    'current',
    'forecast',
    'history',
    'future',
    'marine',
    'astronomy',
    'timezone',
    'alerts',
]

INTENT_TYPES: tuple[str, ...] = (
    'current',
    'forecast',
    'history',
    'future',
    'marine',
    'astronomy',
    'timezone',
    'alerts',
)

DETAIL_FACETS = ('temperature', 'rain', 'wind', 'humidity', 'uv', 'air_quality')

# Furthest ahead a question may point; WeatherAPI.com future reports stop here.
MAX_DAYS_AHEAD = 300

_ISO_DATE = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_DMY_DATE = re.compile(r'(\d{1,2})/(\d{1,2})/(\d{4})')
_NUMBER = re.compile(r'(\d+)')

_RELATIVE_DAYS = {
    'today': 0,
    'hôm nay': 0,
    'yesterday': -1,
    'hôm qua': -1,
    'day before yesterday': -2,
    'hôm kia': -2,
    'tomorrow': 1,
    'ngày mai': 1,
    'day after tomorrow': 2,
    'ngày kia': 2,
    'ngày mốt': 2,
}


class TimeInfo(BaseModel):
    """When the question is about.

    ``type`` is one of current, specific, range, hourly or history. ``value``
    holds an ISO date (specific, history), an hour (hourly) or a number of
    days (range).
    """

    model_config = ConfigDict(populate_by_name=True)

    type: str = 'current'
    value: int | str | None = None
    period: str | None = None
    is_history: bool = Field(default=False, alias='isHistory')


class QuestionIntent(BaseModel):
    """Location, time, report type and facets extracted from a question."""

    location: str | None = None
    time: TimeInfo = Field(default_factory=TimeInfo)
    type: IntentType = 'current'
    details: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _as_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or value.lower() in ('null', 'none', 'n/a'):
        return None
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == 'true'
    return False


def coerce_intent(data: dict) -> QuestionIntent:
    """Build an intent from loosely shaped model output.

    Every field is read defensively; an unknown ``type`` is reclassified from
    the time descriptor.
    """
    time_data = data.get('time')
    if not isinstance(time_data, dict):
        time_data = {}

    value = time_data.get('value')
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        value = None
    elif isinstance(value, float):
        value = int(value) if math.isfinite(value) else None
    elif isinstance(value, str):
        value = _as_text(value)

    time_info = TimeInfo(
        type=_as_text(time_data.get('type')) or 'current',
        value=value,
        period=_as_text(time_data.get('period')),
        is_history=_as_bool(time_data.get('isHistory')),
    )

    intent_type = data.get('type')
    if intent_type not in INTENT_TYPES:
        if time_info.is_history:
            intent_type = 'history'
        elif time_info.type in ('range', 'future'):
            intent_type = 'forecast'
        else:
            intent_type = 'current'

    details = data.get('details')
    if not isinstance(details, list):
        details = []

    return QuestionIntent(
        location=_as_text(data.get('location')),
        time=time_info,
        type=intent_type,
        details=[d for d in details if isinstance(d, str)],
    )


def _checked_date(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _mentioned_date(intent: QuestionIntent, today: date) -> date | None:
    value = intent.time.value
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    match = _ISO_DATE.match(text)
    if match:
        parsed = _checked_date(*(int(part) for part in match.groups()))
        if parsed:
            return parsed

    match = _DMY_DATE.search(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        parsed = _checked_date(year, month, day)
        if parsed:
            return parsed

    # Longest phrase first so "day before yesterday" beats "yesterday".
    for phrase in sorted(_RELATIVE_DAYS, key=len, reverse=True):
        if phrase in text:
            return today + timedelta(days=_RELATIVE_DAYS[phrase])

    match = _NUMBER.search(text)
    if match and intent.time.is_history:
        try:
            return today - timedelta(days=int(match.group(1)))
        except (OverflowError, ValueError):
            return None
    return None


def target_date(intent: QuestionIntent, today: date) -> date:
    """Resolve the calendar date an intent refers to.

    Understands ISO dates, ``dd/mm/yyyy``, relative words ("yesterday",
    "ngày mai"...) and, for history intents, "N days ago" phrasing. Anything
    else means today. The result is clamped to ``HISTORY_FLOOR`` and at most
    ``MAX_DAYS_AHEAD`` days after today.
    """
    mentioned = _mentioned_date(intent, today)
    if mentioned is None:
        return today
    latest = today + timedelta(days=MAX_DAYS_AHEAD)
    return min(max(mentioned, HISTORY_FLOOR), latest)
