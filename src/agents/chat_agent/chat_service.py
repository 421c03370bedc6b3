"""Chat service - one question/answer turn of the weather assistant."""

import asyncio
import logging
import sqlite3
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import date
from typing import Any

from observability import trace_span
from src.tools.api_tools.geocoding_api.geocoding_api import LocationResolver, Place
from src.tools.api_tools.weather_api.weather_api import WeatherApiClient
from src.tools.data_tools.weather_db.models import ChatRecord, ReportType
from src.tools.data_tools.weather_db.weather_db import WeatherDb
from src.tools.shared_libraries.errors import UpstreamError, ValidationError
from src.tools.shared_libraries.helpers import utcnow

from .intent import MAX_DAYS_AHEAD, QuestionIntent, target_date
from .question_resolver import QuestionResolver
from .response_composer import ResponseComposer


logger = logging.getLogger(__name__)

NO_LOCATION_ANSWER = (
    'Sorry, I do not know which place you are asking about. '
    'Please name a city or a specific location.'
)
UNAVAILABLE_ANSWER = (
    'Sorry, weather information cannot be fetched right now. Please try again later.'
)

FORECAST_DAYS = 3
FUTURE_MIN_DAYS = 14
FUTURE_MAX_DAYS = MAX_DAYS_AHEAD

SNAPSHOT_REPORTS = ('current', 'forecast', 'history', 'astronomy', 'future', 'marine', 'timezone', 'alerts')


def plan_reports(intent: QuestionIntent, q: str, on: date, today: date) -> dict[str, tuple[ReportType, dict]]:
    """Choose the reports needed to answer a question, keyed by snapshot section.

    Current, 3-day forecast, astronomy for the target date and alerts are
    always fetched; history, future, marine and timezone only when the
    intent calls for them.
    """
    plan = {
        'current': (ReportType.CURRENT, {'q': q, 'aqi': 'yes'}),
        'forecast': (ReportType.FORECAST, {'q': q, 'days': FORECAST_DAYS, 'aqi': 'yes'}),
        'astronomy': (ReportType.ASTRONOMY, {'q': q, 'dt': on.isoformat()}),
        'alerts': (ReportType.ALERTS, {'q': q}),
    }
    if intent.time.is_history or intent.type == 'history':
        plan['history'] = (ReportType.HISTORY, {'q': q, 'dt': on.isoformat()})
    if FUTURE_MIN_DAYS < (on - today).days <= FUTURE_MAX_DAYS:
        plan['future'] = (ReportType.FUTURE, {'q': q, 'dt': on.isoformat()})
    if intent.type == 'marine':
        plan['marine'] = (ReportType.MARINE, {'q': q, 'tides': 'yes'})
    if intent.type == 'timezone':
        plan['timezone'] = (ReportType.TIMEZONE, {'q': q})
    return plan


class ChatService:
    """Resolves a question, gathers weather facts, answers and records the turn."""

    def __init__(
        self,
        db: WeatherDb,
        weather_client: WeatherApiClient,
        location_resolver: LocationResolver,
        question_resolver: QuestionResolver,
        composer: ResponseComposer,
        today_func: Callable[[], date] | None = None,
    ):
        self._db = db
        self._weather = weather_client
        self._locations = location_resolver
        self._questions = question_resolver
        self._composer = composer
        self._today = today_func or (lambda: utcnow().date())

    async def _find_place(self, *candidates: str | None) -> Place | None:
        for candidate in candidates:
            if not candidate:
                continue
            try:
                places = await self._locations.search(candidate)
            except UpstreamError as e:
                logger.error(f'Location search failed for {candidate}: {e}')
                continue
            if places:
                return places[0]
        return None

    async def _gather(self, plan: dict[str, tuple[ReportType, dict]]) -> dict[str, Any]:
        results = await asyncio.gather(
            *(self._weather.call(report_type, params) for report_type, params in plan.values()),
            return_exceptions=True,
        )
        reports = {}
        for section, result in zip(plan, results):
            if isinstance(result, Exception):
                logger.error(f'Error fetching {section} for chat: {result}')
                reports[section] = None
            else:
                reports[section] = result
        return reports

    async def _save(self, record: ChatRecord) -> ChatRecord:
        try:
            record_id = await asyncio.to_thread(self._db.insert_chat_record, record)
        except (sqlite3.Error, OSError, TypeError, ValueError) as e:
            logger.error(f'Failed to save chat record: {e}')
            return record
        return replace(record, id=record_id)

    @trace_span('chat.ask')
    async def ask(
        self,
        question: str,
        city: str | None = None,
        session_id: str | None = None,
    ) -> ChatRecord:
        """Answer one question and persist the exchange.

        Args:
            question: Free-text weather question.
            city: Place to fall back on when the question names none.
            session_id: Conversation id; generated when absent.

        Raises:
            ValidationError: ``question`` is empty.
        """
        if not question or not question.strip():
            raise ValidationError('Question is required.')

        session_id = session_id or uuid.uuid4().hex
        today = self._today()
        intent = await self._questions.resolve(question)

        place = await self._find_place(intent.location, city)
        if place is None:
            return await self._save(ChatRecord(
                question=question,
                answer=NO_LOCATION_ANSWER,
                session_id=session_id,
                resolved_intent=intent.to_dict(),
                weather_snapshot=None,
                created_at=utcnow(),
            ))

        on = target_date(intent, today)
        reports = await self._gather(plan_reports(intent, place.query, on, today))
        snapshot = {
            'location': place.to_dict(),
            'targetDate': on.isoformat(),
            **{section: reports.get(section) for section in SNAPSHOT_REPORTS},
        }

        if not any(snapshot[section] for section in ('current', 'forecast', 'future', 'history')):
            answer = UNAVAILABLE_ANSWER
        else:
            answer = await self._composer.compose(question, snapshot, intent)

        return await self._save(ChatRecord(
            question=question,
            answer=answer,
            session_id=session_id,
            resolved_intent=intent.to_dict(),
            weather_snapshot=snapshot,
            created_at=utcnow(),
        ))

    async def history(self, session_id: str) -> list[ChatRecord]:
        """Newest-first chat records of a session (at most 50).

        Raises:
            ValidationError: ``session_id`` is empty.
        """
        if not session_id:
            raise ValidationError('Session ID is required.')
        try:
            return await asyncio.to_thread(self._db.list_chat_records, session_id)
        except (sqlite3.Error, OSError) as e:
            logger.error(f'Failed to read chat history for {session_id}: {e}')
            return []
