"""FastAPI dependency getters for the services held on ``app.state``."""

from fastapi import Request

from src.agents.chat_agent.chat_service import ChatService
from src.services.notification_service import NotificationService
from src.services.weather_service import WeatherReportService

from .container import Container


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_reports(request: Request) -> WeatherReportService:
    return get_container(request).reports


def get_notifications(request: Request) -> NotificationService:
    return get_container(request).notifications


def get_chat(request: Request) -> ChatService:
    return get_container(request).chat


def envelope(label: str, data, cached: bool) -> dict:
    """Success body; the message tells whether the store served the data."""
    source = 'retrieved from database' if cached else 'retrieved from API and saved to database'
    return {'message': f'{label} {source}', 'data': data}
