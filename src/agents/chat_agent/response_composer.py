"""Response Composer - natural-language answers from gathered weather facts."""

import logging
from typing import Any

from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from observability import trace_span
from src.tools.api_tools.llm_api.llm_client import GenerativeClient
from src.tools.shared_libraries.helpers import dig, format_temperature, safe_float

from .intent import QuestionIntent
from .prompts import build_answer_prompt


logger = logging.getLogger(__name__)

APOLOGY_ANSWER = 'Sorry, I cannot put together an answer right now. Please try again later.'


def _reading(temp: Any, condition: Any) -> str:
    value = safe_float(temp)
    temp_str = format_temperature(value) if value is not None else 'N/A'
    return f'{temp_str}, {condition or "N/A"}'


def fallback_answer(
    snapshot: dict[str, Any] | None,
    intent: QuestionIntent | None = None,
) -> str:
    """Templated answer from the most important available fields."""
    if not snapshot:
        return APOLOGY_ANSWER

    location_name = dig(snapshot, 'location', 'name', default='this location')
    parts = []

    current = dig(snapshot, 'current', 'current')
    if isinstance(current, dict):
        parts.append(
            f'Current weather in {location_name}: '
            f'{_reading(current.get("temp_c"), dig(current, "condition", "text"))}.'
        )

    forecast_days = dig(snapshot, 'forecast', 'forecast', 'forecastday', default=[])
    if not isinstance(forecast_days, list):
        forecast_days = []
    next_day = forecast_days[1] if len(forecast_days) > 1 else None
    if isinstance(next_day, dict):
        parts.append(
            f'Forecast for {next_day.get("date", "tomorrow")}: '
            f'{_reading(dig(next_day, "day", "avgtemp_c"), dig(next_day, "day", "condition", "text"))}.'
        )

    history_day = dig(snapshot, 'history', 'forecast', 'forecastday', 0)
    if isinstance(history_day, dict):
        parts.append(
            f'Weather on {history_day.get("date")}: '
            f'{_reading(dig(history_day, "day", "avgtemp_c"), dig(history_day, "day", "condition", "text"))}.'
        )

    if intent is not None and intent.time.type == 'hourly' and isinstance(intent.time.value, int):
        hour = intent.time.value
        target = snapshot.get('targetDate')
        for forecast_day in forecast_days:
            if not isinstance(forecast_day, dict) or forecast_day.get('date') != target:
                continue
            reading = dig(forecast_day, 'hour', hour)
            if isinstance(reading, dict):
                parts.append(
                    f'At {hour}:00: '
                    f'{_reading(reading.get("temp_c"), dig(reading, "condition", "text"))}.'
                )
            break

    return ' '.join(parts) or APOLOGY_ANSWER


class ResponseComposer:
    """Answers with the chat model, falling back to a templated sentence.

    The model is tried ``attempts`` times with exponential backoff (1 s, 2 s,
    ...) and reinitialized before the final attempt.
    """

    def __init__(
        self,
        llm: GenerativeClient,
        attempts: int = 3,
        wait: wait_base | None = None,
    ):
        self._llm = llm
        self.attempts = attempts
        self._wait = wait or wait_exponential(multiplier=1)

    def _before_sleep(self, retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(f'Answer generation attempt {retry_state.attempt_number} failed: {exc}')
        if retry_state.attempt_number == self.attempts - 1:
            try:
                self._llm.reinitialize()
            except Exception as e:
                logger.error(f'Could not reinitialize chat model: {e}')

    async def _generate(self, prompt: str) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=self._wait,
            before_sleep=self._before_sleep,
            reraise=True,
        ):
            with attempt:
                return await self._llm.generate(prompt)

    @trace_span('chat.compose_answer')
    async def compose(
        self,
        question: str,
        snapshot: dict[str, Any],
        intent: QuestionIntent | None = None,
    ) -> str:
        """Return a non-empty answer to ``question``."""
        prompt = build_answer_prompt(question, snapshot)
        try:
            answer = await self._generate(prompt)
        except Exception as e:
            logger.error(f'Answer generation failed, using template: {e}')
            return fallback_answer(snapshot, intent)
        return answer.strip()
