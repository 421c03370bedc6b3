"""Query parameter validation for the weather endpoints.

All checks run before any network call and raise ``ValidationError``.
"""

import re
from datetime import date

from src.services.weather_service import DEFAULT_FORECAST_DAYS, LocationQuery
from src.tools.data_tools.weather_db.models import HISTORY_FLOOR
from src.tools.shared_libraries.errors import ValidationError


MIN_FORECAST_DAYS = 1
MAX_FORECAST_DAYS = 14
SEVERITIES = ('minor', 'moderate', 'severe', 'extreme')

_DATE_FORMAT = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def _present(value: str | None) -> bool:
    return value is not None and value.strip() != ''


def _coordinate(value: str, name: str, limit: float) -> float:
    try:
        number = float(value)
    except ValueError:
        raise ValidationError('Latitude and longitude must be numbers.') from None
    if number != number or not -limit <= number <= limit:
        raise ValidationError(f'{name} must be between -{limit:g} and {limit:g}.')
    return number


def parse_location(
    location: str | None,
    lat: str | None,
    lon: str | None,
) -> LocationQuery:
    """Validate the location rules shared by every weather endpoint.

    ``lat`` and ``lon`` must come together; when both are present they win
    over ``location``.
    """
    has_lat, has_lon = _present(lat), _present(lon)
    if has_lat != has_lon:
        raise ValidationError('Latitude and longitude must be provided together.')
    if has_lat:
        return LocationQuery(
            lat=_coordinate(lat, 'Latitude', 90),
            lon=_coordinate(lon, 'Longitude', 180),
        )
    if not _present(location):
        raise ValidationError('Location or coordinates (lat,lon) is required.')
    return LocationQuery(name=location.strip())


def parse_days(days: str | None) -> int:
    if not _present(days):
        return DEFAULT_FORECAST_DAYS
    try:
        number = int(days)
    except ValueError:
        raise ValidationError(
            f'Days must be a number between {MIN_FORECAST_DAYS} and {MAX_FORECAST_DAYS}.'
        ) from None
    if not MIN_FORECAST_DAYS <= number <= MAX_FORECAST_DAYS:
        raise ValidationError(
            f'Days must be a number between {MIN_FORECAST_DAYS} and {MAX_FORECAST_DAYS}.'
        )
    return number


def parse_date(
    value: str | None,
    required: bool = False,
    floor: date | None = None,
) -> str | None:
    """Validate a ``YYYY-MM-DD`` date.

    Returns:
        The date string, or None when optional and absent.
    """
    if not _present(value):
        if required:
            raise ValidationError('Date is required.')
        return None
    value = value.strip()
    if not _DATE_FORMAT.match(value):
        raise ValidationError('Date must be in YYYY-MM-DD format.')
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        raise ValidationError('Date must be a valid calendar date.') from None
    if floor is not None and parsed < floor:
        raise ValidationError(f'Date must be on or after {floor.isoformat()}.')
    return value


def parse_severity(severity: str | None) -> str | None:
    if not _present(severity):
        return None
    if severity not in SEVERITIES:
        raise ValidationError(f'Severity must be one of: {", ".join(SEVERITIES)}.')
    return severity
