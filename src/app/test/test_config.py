"""Unit tests for environment configuration."""

import pytest

from src.app.config import MissingAPIKeyError, Settings


BASE_ENV = {
    'WEATHERAPI_KEY': 'weather',
    'GEOAPIFY_KEY': 'geo',
    'WEATHER_DB_PATH': '/tmp/weather.db',
    'GOOGLE_API_KEY': 'gemini',
}


@pytest.fixture
def env(monkeypatch):
    for name in (
        'MODEL_SOURCE', 'GOOGLE_MODEL_NAME', 'OPENWEATHER_API_KEY', 'WEATHER_LANG',
        'TOOL_LLM_URL', 'TOOL_LLM_NAME', 'API_KEY',
    ):
        monkeypatch.delenv(name, raising=False)
    for name, value in BASE_ENV.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestSettings:
    """Tests for Settings.from_env."""

    def test_google_defaults(self, env):
        settings = Settings.from_env()

        assert settings.weatherapi_key == 'weather'
        assert settings.model_source == 'google'
        assert settings.model_name == 'gemini-2.0-flash'
        assert settings.llm_api_key == 'gemini'
        assert settings.openweather_api_key is None
        assert settings.lang == 'en'

    def test_openai_compatible(self, env):
        env.setenv('MODEL_SOURCE', 'openai')
        env.setenv('TOOL_LLM_URL', 'http://localhost:8000/v1')
        env.setenv('TOOL_LLM_NAME', 'llama')
        env.setenv('API_KEY', 'secret')
        env.setenv('OPENWEATHER_API_KEY', 'owm')

        settings = Settings.from_env()

        assert settings.llm_base_url == 'http://localhost:8000/v1'
        assert settings.model_name == 'llama'
        assert settings.openweather_api_key == 'owm'

    @pytest.mark.parametrize('missing', ['WEATHERAPI_KEY', 'GEOAPIFY_KEY', 'WEATHER_DB_PATH', 'GOOGLE_API_KEY'])
    def test_missing_required(self, env, missing):
        env.delenv(missing)
        with pytest.raises(MissingAPIKeyError, match=missing):
            Settings.from_env()

    def test_openai_requires_url(self, env):
        env.setenv('MODEL_SOURCE', 'openai')
        with pytest.raises(MissingAPIKeyError, match='TOOL_LLM_URL'):
            Settings.from_env()
