"""Question Resolver - free-text question to structured weather intent.

The chat model is asked for a JSON intent first. When the call fails or the
answer holds no usable JSON object, a rule-based parser takes over, so the
resolver always returns an intent and never raises.
"""

import logging
import re
from collections.abc import Callable
from datetime import date, timedelta

from observability import trace_span
from src.tools.api_tools.llm_api.llm_client import GenerativeClient
from src.tools.shared_libraries.helpers import parse_json_object, utcnow

from .intent import QuestionIntent, TimeInfo, coerce_intent
from .prompts import build_intent_prompt


logger = logging.getLogger(__name__)

# History phrasing: "N days ago", "yesterday" and explicit dd/mm/yyyy dates.
_DAYS_AGO = [
    re.compile(r'(\d+)\s+days?\s+ago'),
    re.compile(r'(\d+)\s+ngày\s+(?:trước|qua)'),
]
_YESTERDAY = re.compile(r'\byesterday\b|hôm qua')
_DMY_DATE = re.compile(r'\b(\d{1,2})/(\d{1,2})/(\d{4})\b')

# Keyword categories, first match wins.
KEYWORD_CATEGORIES: list[tuple[str, tuple[str, ...]]] = [
    ('forecast', ('forecast', 'tomorrow', 'next week', 'dự báo', 'ngày mai', 'tuần tới')),
    ('marine', ('sea', 'waves', 'biển', 'sóng')),
    ('astronomy', ('sun', 'moon', 'sunrise', 'sunset', 'moonrise', 'moonset', 'mặt trời', 'mặt trăng')),
    ('alerts', ('warning', 'storm', 'cảnh báo', 'bão')),
    ('timezone', ('timezone', 'time zone', 'local time', 'múi giờ', 'giờ địa phương')),
]

DETAIL_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ('temperature', ('temperature', 'temp', 'hot', 'cold', 'nhiệt độ', 'nóng', 'lạnh')),
    ('rain', ('rain', 'precipitation', 'umbrella', 'mưa')),
    ('wind', ('wind', 'gió')),
    ('humidity', ('humid', 'độ ẩm')),
    ('uv', ('uv',)),
    ('air_quality', ('air quality', 'aqi', 'pollution', 'chất lượng không khí')),
]

_VI_HOUR = re.compile(r'(\d{1,2})\s*giờ\s*(sáng|trưa|chiều|tối|đêm)')
_VI_PERIODS = {
    'sáng': 'morning',
    'trưa': 'noon',
    'chiều': 'afternoon',
    'tối': 'evening',
    'đêm': 'night',
}
_AM_PM_HOUR = re.compile(r'\b(\d{1,2})\s*(am|pm)\b')
_H_HOUR = re.compile(r'\b(\d{1,2})\s*h\b')

_DAY_WORDS: list[tuple[tuple[str, ...], int]] = [
    (('day after tomorrow', 'ngày kia', 'ngày mốt'), 2),
    (('tomorrow', 'ngày mai'), 1),
    (('today', 'hôm nay'), 0),
]
_RANGE_DAYS = [
    re.compile(r'\b(?:next|coming)\s+(\d+)\s+days?\b'),
    re.compile(r'\bin\s+(\d+)\s+days?\b'),
    re.compile(r'(\d+)\s*ngày\s*(?:tới|sau)'),
]
_WEEK = ('next week', 'tuần tới', 'tuần sau')

_PLACE_PREFIX = re.compile(r'\b(?:in|at|for|ở|tại)\s+', re.IGNORECASE)

# Well-known Vietnamese cities, matched on whole words.
KNOWN_CITIES: list[tuple[str, str]] = [
    ('hà nội', 'Hà Nội'),
    ('hanoi', 'Hà Nội'),
    ('ha noi', 'Hà Nội'),
    ('hồ chí minh', 'Hồ Chí Minh'),
    ('ho chi minh', 'Hồ Chí Minh'),
    ('sài gòn', 'Hồ Chí Minh'),
    ('saigon', 'Hồ Chí Minh'),
    ('đà nẵng', 'Đà Nẵng'),
    ('da nang', 'Đà Nẵng'),
    ('hải phòng', 'Hải Phòng'),
    ('hai phong', 'Hải Phòng'),
    ('cần thơ', 'Cần Thơ'),
    ('can tho', 'Cần Thơ'),
    ('huế', 'Huế'),
    ('hue', 'Huế'),
    ('nha trang', 'Nha Trang'),
    ('buôn ma thuột', 'Buôn Ma Thuột'),
    ('đà lạt', 'Đà Lạt'),
    ('da lat', 'Đà Lạt'),
    ('dalat', 'Đà Lạt'),
    ('vũng tàu', 'Vũng Tàu'),
    ('vung tau', 'Vũng Tàu'),
]


def _contains_word(text: str, phrase: str) -> bool:
    return re.search(r'(?<!\w)' + re.escape(phrase) + r'(?!\w)', text) is not None


def _history_date(text: str, today: date) -> date | None:
    for pattern in _DAYS_AGO:
        match = pattern.search(text)
        if match:
            try:
                return today - timedelta(days=int(match.group(1)))
            except (OverflowError, ValueError):
                return None
    if _YESTERDAY.search(text):
        return today - timedelta(days=1)
    match = _DMY_DATE.search(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def _extract_hour(text: str) -> tuple[int, str | None] | None:
    match = _VI_HOUR.search(text)
    if match:
        hour = int(match.group(1))
        period = _VI_PERIODS[match.group(2)]
        if period in ('afternoon', 'evening') and hour < 12:
            hour += 12
        elif period == 'night' and 6 <= hour < 12:
            hour += 12
        return (hour, period) if hour < 24 else None

    match = _AM_PM_HOUR.search(text)
    if match:
        hour = int(match.group(1))
        if not 1 <= hour <= 12:
            return None
        if match.group(2) == 'pm':
            hour = hour % 12 + 12
            return hour, 'afternoon' if hour < 18 else 'evening'
        return hour % 12, 'morning'

    match = _H_HOUR.search(text)
    if match:
        hour = int(match.group(1))
        return (hour, None) if hour < 24 else None
    return None


def _extract_range_days(text: str) -> int | None:
    for pattern in _RANGE_DAYS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    if any(phrase in text for phrase in _WEEK):
        return 7
    return None


def extract_location(question: str) -> str | None:
    """Find a place name in ``question``.

    Capitalized words after "in", "at", "for" (or "ở", "tại") win; otherwise
    a well-known city mentioned anywhere.
    """
    for match in _PLACE_PREFIX.finditer(question):
        words = []
        for word in question[match.end():].split():
            stripped = word.strip('?!.,;:"\'()')
            if not stripped or not stripped[0].isupper():
                break
            words.append(stripped)
            if stripped != word.rstrip('"\')'):
                break
        if words:
            return ' '.join(words)

    lowered = question.lower()
    for alias, name in KNOWN_CITIES:
        if _contains_word(lowered, alias):
            return name
    return None


def rule_based_intent(question: str, today: date | None = None) -> QuestionIntent:
    """Deterministic intent used when the chat model is unavailable."""
    today = today or utcnow().date()
    text = question.lower()

    details = [
        facet for facet, keywords in DETAIL_KEYWORDS
        if any(_contains_word(text, keyword) for keyword in keywords)
    ]
    location = extract_location(question)

    mentioned = _history_date(text, today)
    if mentioned is not None and mentioned <= today:
        return QuestionIntent(
            location=location,
            time=TimeInfo(type='history', value=mentioned.isoformat(), is_history=True),
            type='history',
            details=details,
        )

    intent_type = 'current'
    for category, keywords in KEYWORD_CATEGORIES:
        if any(_contains_word(text, keyword) for keyword in keywords):
            intent_type = category
            break

    time_info = TimeInfo()
    hour = _extract_hour(text)
    if hour is not None:
        time_info = TimeInfo(type='hourly', value=hour[0], period=hour[1])
    elif mentioned is not None:
        # An explicit date that lies ahead.
        time_info = TimeInfo(type='specific', value=mentioned.isoformat())
        if intent_type == 'current':
            intent_type = 'future' if (mentioned - today).days > 14 else 'forecast'
    else:
        for phrases, offset in _DAY_WORDS:
            if any(phrase in text for phrase in phrases):
                time_info = TimeInfo(
                    type='specific',
                    value=(today + timedelta(days=offset)).isoformat(),
                )
                break
        else:
            days = _extract_range_days(text)
            if days is not None:
                time_info = TimeInfo(type='range', value=days)
                if intent_type == 'current':
                    intent_type = 'forecast'

    return QuestionIntent(
        location=location,
        time=time_info,
        type=intent_type,
        details=details,
    )


def _fallback_intent(question: str, today: date) -> QuestionIntent:
    try:
        return rule_based_intent(question, today)
    except Exception as e:
        logger.warning(f'Rule-based parsing failed, using defaults: {e}')
        return QuestionIntent()


class QuestionResolver:
    """Resolves questions with the chat model, falling back to rules."""

    def __init__(
        self,
        llm: GenerativeClient,
        today_func: Callable[[], date] | None = None,
    ):
        self._llm = llm
        self._today = today_func or (lambda: utcnow().date())

    @trace_span('chat.resolve_question')
    async def resolve(self, question: str) -> QuestionIntent:
        today = self._today()
        try:
            raw = await self._llm.generate(build_intent_prompt(question, today.isoformat()))
        except Exception as e:
            logger.warning(f'Question analysis failed, using rules: {e}')
            return _fallback_intent(question, today)

        data = parse_json_object(raw)
        if data is None:
            logger.warning('No JSON intent in model output, using rules')
            return _fallback_intent(question, today)

        try:
            return coerce_intent(data)
        except Exception as e:
            logger.warning(f'Unusable intent from model ({e}), using rules')
            return _fallback_intent(question, today)
