"""Prompt templates for the chat assistant."""

from typing import Any

from src.tools.shared_libraries.helpers import dig


INTENT_PROMPT = (
    'Analyze the following weather question and return JSON with:\n'
    '1. location: the place name mentioned (or null)\n'
    '2. time: the time the question is about\n'
    '3. type: the kind of weather information needed '
    '(current, forecast, history, future, marine, astronomy, timezone, alerts)\n'
    '4. details: requested facets (temperature, rain, wind, humidity, uv, air_quality)\n'
    '\n'
    'Today is {today}.\n'
    'Question: "{question}"\n'
    '\n'
    'Return JSON in this format:\n'
    '{{\n'
    '  "location": "string or null",\n'
    '  "time": {{\n'
    '    "type": "current/specific/range/hourly/history",\n'
    '    "value": "ISO date, hour or number of days",\n'
    '    "period": "morning/afternoon/evening/night or null",\n'
    '    "isHistory": true/false\n'
    '  }},\n'
    '  "type": "current/forecast/history/future/marine/astronomy/timezone/alerts",\n'
    '  "details": ["temperature", "rain", "wind"]\n'
    '}}'
)

ANSWER_INSTRUCTION = (
    'Answer briefly and naturally, in the language of the question. '
    'Do not use special characters such as **, [] or (). '
    'Only include the information needed to answer the question.'
)


def build_intent_prompt(question: str, today: str) -> str:
    return INTENT_PROMPT.format(question=question, today=today)


def _na(value: Any) -> Any:
    return 'N/A' if value is None or value == '' else value


def _current_section(current: dict) -> list[str]:
    lines = [
        f'Current weather ({_na(current.get("last_updated"))}):',
        f'- Temperature: {_na(current.get("temp_c"))}°C '
        f'(feels like {_na(current.get("feelslike_c"))}°C)',
        f'- Condition: {_na(dig(current, "condition", "text"))}',
        f'- Wind: {_na(current.get("wind_kph"))} km/h ({_na(current.get("wind_dir"))})',
        f'- Humidity: {_na(current.get("humidity"))}%',
        f'- Precipitation: {_na(current.get("precip_mm"))} mm',
        f'- Visibility: {_na(current.get("vis_km"))} km',
    ]
    air_quality = current.get('air_quality')
    if isinstance(air_quality, dict):
        lines.append(f'- Air quality (US EPA index): {_na(air_quality.get("us-epa-index"))}/6')
    return lines


def _day_section(title: str, forecast_day: dict) -> list[str]:
    day = forecast_day.get('day') or {}
    return [
        title,
        f'- Temperature: {_na(day.get("avgtemp_c"))}°C '
        f'(high {_na(day.get("maxtemp_c"))}°C, low {_na(day.get("mintemp_c"))}°C)',
        f'- Condition: {_na(dig(day, "condition", "text"))}',
        f'- Precipitation: {_na(day.get("totalprecip_mm"))} mm',
        f'- Humidity: {_na(day.get("avghumidity"))}%',
        f'- Wind: {_na(day.get("maxwind_kph"))} km/h',
    ]


def build_answer_prompt(question: str, snapshot: dict[str, Any]) -> str:
    """Embed whichever report sections have data, then the question."""
    lines = [
        'You are a weather assistant. Answer the user question using the '
        'following weather data.',
        '',
    ]

    location_name = dig(snapshot, 'location', 'name')
    if location_name:
        lines += [f'Location: {location_name}', '']

    current = dig(snapshot, 'current', 'current')
    if isinstance(current, dict):
        lines += _current_section(current) + ['']

    forecast_days = dig(snapshot, 'forecast', 'forecast', 'forecastday')
    if isinstance(forecast_days, list) and forecast_days:
        lines.append('Forecast:')
        for forecast_day in forecast_days:
            if isinstance(forecast_day, dict):
                lines += _day_section(f'Day {_na(forecast_day.get("date"))}:', forecast_day)
        lines.append('')

    history_day = dig(snapshot, 'history', 'forecast', 'forecastday', 0)
    if isinstance(history_day, dict):
        lines += _day_section(f'Weather on {_na(history_day.get("date"))}:', history_day)
        lines.append('')

    astro = dig(snapshot, 'astronomy', 'astronomy', 'astro')
    if isinstance(astro, dict):
        lines += [
            'Astronomy:',
            f'- Sunrise: {_na(astro.get("sunrise"))}',
            f'- Sunset: {_na(astro.get("sunset"))}',
            f'- Moonrise: {_na(astro.get("moonrise"))}',
            f'- Moonset: {_na(astro.get("moonset"))}',
            f'- Moon phase: {_na(astro.get("moon_phase"))}',
            '',
        ]

    alerts = dig(snapshot, 'alerts', 'alerts', 'alert')
    if isinstance(alerts, dict):
        alerts = [alerts]
    if isinstance(alerts, list) and alerts:
        lines.append('Weather alerts:')
        for alert in alerts:
            if isinstance(alert, dict):
                lines += [
                    f'- {_na(alert.get("headline"))}',
                    f'  {_na(alert.get("msgtype"))}: {_na(alert.get("severity"))}',
                    f'  {_na(alert.get("desc"))}',
                ]
        lines.append('')

    lines += [f'User question: {question}', '', ANSWER_INSTRUCTION]
    return '\n'.join(lines)
