"""FastAPI application factory for the weather aggregator."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from src.tools.shared_libraries.errors import ValidationError, WeatherAppError
from src.tools.shared_libraries.retry import DEFAULT_TIMEOUT

from .config import Settings
from .container import Container, build_container
from .routes import chat, notifications, weather


logger = logging.getLogger(__name__)


def error_body(error: WeatherAppError) -> dict:
    return {'error': error.code, 'message': error.message}


async def handle_app_error(request: Request, exc: WeatherAppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f'{request.method} {request.url.path} failed: {exc.message}')
    return JSONResponse(status_code=exc.status_code, content=error_body(exc))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
    error = ValidationError(f'Invalid request: {detail}')
    return JSONResponse(status_code=error.status_code, content=error_body(error))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f'Unhandled error on {request.method} {request.url.path}: {exc}')
    error = WeatherAppError('An error occurred while processing the request.')
    return JSONResponse(status_code=error.status_code, content=error_body(error))


def create_app(container: Container | None = None, settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        container: Prebuilt services. When omitted, the lifespan builds them
            from ``settings`` around a shared ``httpx.AsyncClient`` that is
            closed on shutdown.
        settings: Required when ``container`` is omitted.
    """
    if container is None and settings is None:
        raise ValueError('Either container or settings must be provided.')

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        http_client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        app.state.container = build_container(settings, http_client)
        logger.info(f'Weather store at {settings.db_path}')
        try:
            yield
        finally:
            await http_client.aclose()

    app = FastAPI(title='Weather Aggregator', version='1.0.0', lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )
    app.add_exception_handler(WeatherAppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(Exception, handle_unexpected)

    @app.get('/', response_class=PlainTextResponse)
    async def root() -> str:
        return 'Weather aggregator API is running'

    app.include_router(notifications.router, prefix='/api')
    app.include_router(weather.router, prefix='/api')
    app.include_router(chat.router, prefix='/api')
    return app
