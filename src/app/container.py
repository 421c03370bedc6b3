"""Wires clients, the store and services together for one process."""

from dataclasses import dataclass

import httpx

from src.agents.alert_agent.alert_agent import AlertAnalyst
from src.agents.chat_agent.chat_service import ChatService
from src.agents.chat_agent.question_resolver import QuestionResolver
from src.agents.chat_agent.response_composer import ResponseComposer
from src.agents.forecast_agent.seven_day import SevenDayForecaster
from src.services.notification_service import NotificationService
from src.services.weather_service import WeatherReportService
from src.tools.api_tools.geocoding_api.geocoding_api import LocationResolver
from src.tools.api_tools.llm_api.llm_client import GenerativeClient, create_chat_model
from src.tools.api_tools.openweather_api.openweather_api import OpenWeatherClient
from src.tools.api_tools.weather_api.weather_api import WeatherApiClient
from src.tools.data_tools.weather_db.cache import WeatherCache
from src.tools.data_tools.weather_db.weather_db import WeatherDb
from src.tools.shared_libraries.retry import RetryPolicy

from .config import Settings


@dataclass
class Container:
    """Services handed to the HTTP routes."""

    reports: WeatherReportService
    notifications: NotificationService
    chat: ChatService


def build_container(
    settings: Settings,
    http_client: httpx.AsyncClient,
    llm: GenerativeClient | None = None,
) -> Container:
    """Construct every dependency from ``settings``.

    Args:
        settings: Runtime configuration.
        http_client: Shared client for all upstream HTTP calls.
        llm: Chat model client; built from ``settings`` when omitted.
    """
    policy = RetryPolicy()
    db = WeatherDb(settings.db_path)
    cache = WeatherCache(db)

    llm = llm or GenerativeClient(lambda: create_chat_model(
        model_source=settings.model_source,
        model_name=settings.model_name,
        api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
    ))
    weather_client = WeatherApiClient(http_client, settings.weatherapi_key, settings.lang, policy)
    location_resolver = LocationResolver(http_client, settings.geoapify_key, settings.lang, policy)
    openweather = OpenWeatherClient(
        http_client,
        settings.openweather_api_key,
        lang=settings.lang,
        policy=policy,
    )

    reports = WeatherReportService(
        cache,
        weather_client,
        location_resolver,
        SevenDayForecaster(openweather, llm),
    )
    notifications = NotificationService(
        db,
        cache,
        reports,
        weather_client,
        location_resolver,
        AlertAnalyst(llm, settings.lang),
    )
    chat = ChatService(
        db,
        weather_client,
        location_resolver,
        QuestionResolver(llm),
        ResponseComposer(llm),
    )
    return Container(reports=reports, notifications=notifications, chat=chat)
