"""Environment configuration for the weather aggregator."""

import os
from dataclasses import dataclass


class MissingAPIKeyError(Exception):
    """Exception for missing API key."""


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise MissingAPIKeyError(f'{name} environment variable not set.')
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Build with :meth:`from_env`."""

    weatherapi_key: str
    geoapify_key: str
    db_path: str
    openweather_api_key: str | None = None
    model_source: str = 'google'
    model_name: str | None = None
    llm_api_key: str | None = None
    llm_base_url: str | None = None
    lang: str = 'en'

    @classmethod
    def from_env(cls) -> 'Settings':
        """Read settings from the environment (``.env`` is loaded by the CLI).

        Raises:
            MissingAPIKeyError: A required variable is unset or empty.
        """
        weatherapi_key = _require('WEATHERAPI_KEY')
        geoapify_key = _require('GEOAPIFY_KEY')
        db_path = _require('WEATHER_DB_PATH')

        model_source = os.getenv('MODEL_SOURCE', 'google')
        if model_source == 'google':
            llm_api_key = _require('GOOGLE_API_KEY')
            model_name = os.getenv('GOOGLE_MODEL_NAME', 'gemini-2.0-flash')
            llm_base_url = None
        else:
            llm_base_url = _require('TOOL_LLM_URL')
            model_name = _require('TOOL_LLM_NAME')
            llm_api_key = _require('API_KEY')

        return cls(
            weatherapi_key=weatherapi_key,
            geoapify_key=geoapify_key,
            db_path=db_path,
            openweather_api_key=os.getenv('OPENWEATHER_API_KEY') or None,
            model_source=model_source,
            model_name=model_name,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            lang=os.getenv('WEATHER_LANG', 'en'),
        )
