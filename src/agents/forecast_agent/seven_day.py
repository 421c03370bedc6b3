"""Seven-day forecast: five real days plus two AI-extrapolated days.

The real days come from OpenWeatherMap's 3-hour buckets aggregated per
calendar date. The chat model is asked to predict two more days; its output
passes through a plausible-range gate computed from the last five real days.
Predictions are never repaired: if either day fails the gate, both are
dropped and the notice says the forecast covers five days only.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from observability import trace_span
from src.tools.api_tools.llm_api.llm_client import GenerativeClient
from src.tools.api_tools.openweather_api.openweather_api import OpenWeatherClient
from src.tools.shared_libraries.errors import UpstreamError
from src.tools.shared_libraries.helpers import dig, parse_json_object, safe_float


logger = logging.getLogger(__name__)

SOURCE = 'openweathermap+gemini'

# Allowed weather categories with the icon and description forced on predictions.
WEATHER_VOCABULARY: dict[str, dict[str, str]] = {
    'Clear': {'icon': '01d', 'description': 'clear sky'},
    'Clouds': {'icon': '02d', 'description': 'scattered clouds'},
    'Rain': {'icon': '10d', 'description': 'light rain'},
    'Thunderstorm': {'icon': '11d', 'description': 'thunderstorm'},
    'Snow': {'icon': '13d', 'description': 'snow'},
    'Mist': {'icon': '50d', 'description': 'mist'},
}

NOTICE_WITH_PREDICTION = (
    '7-day forecast: 5 days from OpenWeatherMap and 2 days predicted by AI.'
)
NOTICE_FIVE_DAY_ONLY = (
    '5-day forecast from OpenWeatherMap (no AI prediction: accuracy could not be ensured).'
)

PREDICTION_PROMPT = (
    'Based on the last 5 days of weather data for {city}, predict the weather '
    'for the next 2 days (day 6 and day 7).\n'
    'Data for the last 5 days:\n'
    '{data}\n'
    '\n'
    'Weather trend:\n'
    '- Average temperature: {avg_temp:.1f}°C\n'
    '- Temperature range: {temp_range:.1f}°C\n'
    '- Average humidity: {avg_humidity:.1f}%\n'
    '- Average wind speed: {avg_wind:.1f} m/s\n'
    '- Common weather types: {weather_types}\n'
    '\n'
    'The prediction must satisfy:\n'
    '1. Temperature between {temp_low:.1f}°C and {temp_high:.1f}°C\n'
    '2. Humidity between {humidity_low:.1f}% and {humidity_high:.1f}%\n'
    '3. Wind speed between {wind_low:.1f} and {wind_high:.1f} m/s\n'
    '4. Weather is one of: {vocabulary}\n'
    '\n'
    'Return only JSON in exactly this format:\n'
    '{{\n'
    '  "day6": {{\n'
    '    "date": "YYYY-MM-DD",\n'
    '    "main": {{"temp": 25.5, "feels_like": 26.0, "temp_min": 24.0, '
    '"temp_max": 27.0, "humidity": 75}},\n'
    '    "weather": [{{"main": "Clouds", "description": "scattered clouds", "icon": "02d"}}],\n'
    '    "wind": {{"speed": 3.5, "deg": 180}},\n'
    '    "pop": 0.2\n'
    '  }},\n'
    '  "day7": {{ ...same fields... }}\n'
    '}}'
)

_REQUIRED_NUMBERS = (
    ('main', 'temp'),
    ('main', 'feels_like'),
    ('main', 'temp_min'),
    ('main', 'temp_max'),
    ('main', 'humidity'),
    ('wind', 'speed'),
    ('wind', 'deg'),
    ('pop',),
)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _epoch(day: date) -> int:
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp())


def aggregate_daily(buckets: list[dict]) -> list[dict]:
    """Collapse 3-hour buckets into one entry per calendar date.

    Buckets without a date or temperature are skipped.
    """
    daily: dict[str, dict[str, Any]] = {}
    for item in buckets:
        if not isinstance(item, dict):
            continue
        day = (item.get('dt_txt') or '').split(' ')[0]
        temp = safe_float(dig(item, 'main', 'temp'))
        if not day or temp is None:
            continue

        entry = daily.setdefault(day, {
            'temps': [],
            'feels_like': [],
            'humidity': [],
            'weather': item.get('weather') or [],
            'wind_speeds': [],
            'wind_deg': [],
            'pop': [],
        })
        entry['temps'].append(temp)
        for key, path in (
            ('feels_like', ('main', 'feels_like')),
            ('humidity', ('main', 'humidity')),
            ('wind_speeds', ('wind', 'speed')),
            ('wind_deg', ('wind', 'deg')),
            ('pop', ('pop',)),
        ):
            value = safe_float(dig(item, *path))
            if value is not None:
                entry[key].append(value)

    days = []
    for day, entry in daily.items():
        try:
            timestamp = _epoch(date.fromisoformat(day))
        except ValueError:
            continue
        days.append({
            'dt': timestamp,
            'dt_txt': day,
            'main': {
                'temp': _mean(entry['temps']),
                'feels_like': _mean(entry['feels_like']),
                'temp_min': min(entry['temps']),
                'temp_max': max(entry['temps']),
                'humidity': round(_mean(entry['humidity'])),
            },
            'weather': entry['weather'],
            'wind': {
                'speed': _mean(entry['wind_speeds']),
                'deg': round(_mean(entry['wind_deg'])),
            },
            'pop': max(entry['pop']) if entry['pop'] else 0,
            'clouds': {'all': 0},
            'visibility': 10000,
        })
    return days


@dataclass(frozen=True)
class PlausibleBounds:
    """Ranges a predicted day must fall within, from observed days."""

    avg_temp: float
    temp_range: float
    avg_humidity: float
    avg_wind: float
    weather_types: tuple[str, ...]

    @property
    def temp(self) -> tuple[float, float]:
        return self.avg_temp - self.temp_range, self.avg_temp + self.temp_range

    @property
    def humidity(self) -> tuple[float, float]:
        return max(0.0, self.avg_humidity - 20), min(100.0, self.avg_humidity + 20)

    @property
    def wind(self) -> tuple[float, float]:
        return max(0.0, self.avg_wind - 5), self.avg_wind + 5


def compute_bounds(days: list[dict]) -> PlausibleBounds | None:
    """Bounds from the last five aggregated days, or None without data."""
    recent = days[-5:]
    if not recent:
        return None
    temps = [day['main']['temp'] for day in recent]
    weather_types = []
    for day in recent:
        main = dig(day, 'weather', 0, 'main')
        if main and main not in weather_types:
            weather_types.append(main)
    return PlausibleBounds(
        avg_temp=_mean(temps),
        temp_range=max(temps) - min(temps),
        avg_humidity=_mean([day['main']['humidity'] for day in recent]),
        avg_wind=_mean([day['wind']['speed'] for day in recent]),
        weather_types=tuple(weather_types),
    )


def _within(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def validate_prediction(day: Any, bounds: PlausibleBounds, label: str = 'day') -> bool:
    """Return whether a predicted day is complete and inside ``bounds``."""
    if not isinstance(day, dict):
        logger.warning(f'{label} prediction missing')
        return False
    for path in _REQUIRED_NUMBERS:
        if safe_float(dig(day, *path)) is None:
            logger.warning(f'{label} prediction missing {".".join(path)}')
            return False

    temp = safe_float(dig(day, 'main', 'temp'))
    if not _within(temp, bounds.temp):
        logger.warning(f'{label} temperature out of range: {temp}°C')
        return False
    humidity = safe_float(dig(day, 'main', 'humidity'))
    if not _within(humidity, bounds.humidity):
        logger.warning(f'{label} humidity out of range: {humidity}%')
        return False
    wind_speed = safe_float(dig(day, 'wind', 'speed'))
    if not _within(wind_speed, bounds.wind):
        logger.warning(f'{label} wind speed out of range: {wind_speed} m/s')
        return False

    weather_main = dig(day, 'weather', 0, 'main')
    if not isinstance(weather_main, str) or weather_main not in WEATHER_VOCABULARY:
        logger.warning(f'{label} invalid weather type: {weather_main}')
        return False
    return True


def build_predicted_day(day: dict, on: date) -> dict:
    """Shape an accepted prediction like an aggregated day dated ``on``."""
    weather = dict(day['weather'][0])
    weather.update(WEATHER_VOCABULARY[weather['main']])
    return {
        'dt': _epoch(on),
        'dt_txt': on.isoformat(),
        'main': {
            'temp': safe_float(day['main']['temp']),
            'feels_like': safe_float(day['main']['feels_like']),
            'temp_min': safe_float(day['main']['temp_min']),
            'temp_max': safe_float(day['main']['temp_max']),
            'humidity': safe_float(day['main']['humidity']),
        },
        'weather': [weather],
        'wind': {
            'speed': safe_float(day['wind']['speed']),
            'deg': safe_float(day['wind']['deg']),
        },
        'pop': safe_float(day['pop']),
        'clouds': {'all': 0},
        'visibility': 10000,
    }


class SevenDayForecaster:
    """Builds the seven-day forecast payload."""

    def __init__(self, openweather: OpenWeatherClient, llm: GenerativeClient):
        self._openweather = openweather
        self._llm = llm

    @property
    def configured(self) -> bool:
        return self._openweather.configured

    async def _predict(self, city: str, days: list[dict], bounds: PlausibleBounds) -> list[dict]:
        temp_low, temp_high = bounds.temp
        humidity_low, humidity_high = bounds.humidity
        wind_low, wind_high = bounds.wind
        prompt = PREDICTION_PROMPT.format(
            city=city,
            data=json.dumps(days, ensure_ascii=False, indent=2),
            avg_temp=bounds.avg_temp,
            temp_range=bounds.temp_range,
            avg_humidity=bounds.avg_humidity,
            avg_wind=bounds.avg_wind,
            weather_types=', '.join(bounds.weather_types),
            temp_low=temp_low,
            temp_high=temp_high,
            humidity_low=humidity_low,
            humidity_high=humidity_high,
            wind_low=wind_low,
            wind_high=wind_high,
            vocabulary=', '.join(WEATHER_VOCABULARY),
        )
        try:
            raw = await self._llm.generate(prompt)
        except Exception as e:
            logger.error(f'Forecast prediction failed: {e}')
            return []

        predicted = parse_json_object(raw)
        if predicted is None:
            logger.warning('No JSON prediction in model output')
            return []

        day6, day7 = predicted.get('day6'), predicted.get('day7')
        if not (validate_prediction(day6, bounds, 'Day 6') and validate_prediction(day7, bounds, 'Day 7')):
            logger.warning('Prediction validation failed, keeping 5-day forecast')
            return []

        last_real = date.fromisoformat(days[-1]['dt_txt'])
        return [
            build_predicted_day(day6, last_real + timedelta(days=1)),
            build_predicted_day(day7, last_real + timedelta(days=2)),
        ]

    @trace_span('forecast.seven_day')
    async def build(
        self,
        lat: float | None = None,
        lon: float | None = None,
        city: str | None = None,
    ) -> dict[str, Any]:
        """Fetch, aggregate and extend the forecast for one place.

        Raises:
            ServiceNotConfiguredError: No OpenWeatherMap key is configured.
            UpstreamError: OpenWeatherMap failed or answered without a
                forecast list.
        """
        data = await self._openweather.get_forecast(lat=lat, lon=lon, city=city)
        buckets = data.get('list') if isinstance(data, dict) else None
        if not isinstance(buckets, list):
            raise UpstreamError('Invalid response from OpenWeatherMap API.')

        days = aggregate_daily(buckets)
        city_info = data.get('city') or {}
        city_name = city_info.get('name') or city or f'{lat},{lon}'

        predicted = []
        bounds = compute_bounds(days)
        if bounds is not None:
            predicted = await self._predict(city_name, days, bounds)

        return {
            'location': {
                'name': city_info.get('name'),
                'country': city_info.get('country'),
                'coord': city_info.get('coord'),
            },
            'forecast': days + predicted,
            'notice': NOTICE_WITH_PREDICTION if predicted else NOTICE_FIVE_DAY_ONLY,
        }
