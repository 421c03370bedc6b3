"""Shared helper functions for weather tools and agents."""

import json
from datetime import datetime, timezone
from typing import Any


def format_temperature(temp: float, units: str = 'metric') -> str:
    """Format temperature with unit symbol.

    Args:
        temp: Temperature value.
        units: "metric" for Celsius, "imperial" for Fahrenheit.

    Returns:
        Formatted temperature string.
    """
    unit_symbol = 'C' if units == 'metric' else 'F'
    return f'{temp:.1f}{unit_symbol}'


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_timestamp(moment: datetime | None = None) -> str:
    """Get a UTC timestamp in ISO format with fixed microsecond precision.

    Fixed precision keeps stored timestamps lexicographically comparable.
    """
    moment = moment or utcnow()
    return moment.astimezone(timezone.utc).isoformat(timespec='microseconds')


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_text_content(content: Any) -> str | None:
    """Extract text from the content formats chat models return."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict):
                if block.get('type') == 'text' or 'text' in block:
                    parts.append(block.get('text') or '')
        return ''.join(parts) or None
    return None


def find_json_span(text: str) -> str | None:
    """Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals are ignored so that values such as
    ``"{not a brace}"`` do not end the object early.
    """
    start = text.find('{')
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == '\\':
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == '{':
                depth += 1
            elif char == '}':
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        # Unbalanced from this brace on; try the next opening brace.
        start = text.find('{', start + 1)
    return None


def parse_json_object(text: str | None) -> dict | None:
    """Parse the first JSON object embedded in free text, or return None."""
    if not text:
        return None
    span = find_json_span(text)
    if span is None:
        return None
    try:
        data = json.loads(span)
    except (json.JSONDecodeError, TypeError, ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def dig(data: Any, *path: Any, default: Any = None) -> Any:
    """Walk nested dicts/lists, returning ``default`` on any missing step."""
    current = data
    for key in path:
        if isinstance(current, dict):
            current = current.get(key)
        elif isinstance(current, list) and isinstance(key, int):
            current = current[key] if -len(current) <= key < len(current) else None
        else:
            return default
        if current is None:
            return default
    return current

