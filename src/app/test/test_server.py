"""HTTP tests for the weather aggregator API."""

import pytest
from fastapi.testclient import TestClient
from tenacity import wait_none

from conftest import FakeLLM
from src.agents.alert_agent.alert_agent import AlertAnalyst, alert_identifier
from src.agents.chat_agent.chat_service import ChatService
from src.agents.chat_agent.question_resolver import QuestionResolver
from src.agents.chat_agent.response_composer import ResponseComposer
from src.app.config import Settings
from src.app.container import Container
from src.app.server import create_app
from src.services.notification_service import NotificationService
from src.services.weather_service import WeatherReportService
from src.tools.data_tools.weather_db.cache import WeatherCache
from src.tools.data_tools.weather_db.models import AuxiliaryKey, LocationKey, ReportType
from src.tools.shared_libraries.errors import (
    UpstreamApplicationError,
    UpstreamTransportError,
)
from src.tools.shared_libraries.helpers import utcnow


ALERT = {
    'headline': 'Flood watch', 'severity': 'Moderate', 'event': 'Flood',
    'areas': 'Hà Nội', 'effective': '2024-06-15T06:00', 'expires': '2024-06-16T06:00',
    'desc': 'Heavy rain.', 'instruction': 'Avoid low areas.',
}


class UnconfiguredForecaster:
    configured = False

    async def build(self, lat=None, lon=None, city=None):
        raise AssertionError('not configured')


@pytest.fixture
def container(weather_db, weather_client, location_resolver):
    llm = FakeLLM(RuntimeError('model unavailable'))
    cache = WeatherCache(weather_db)
    reports = WeatherReportService(cache, weather_client, location_resolver, UnconfiguredForecaster())
    return Container(
        reports=reports,
        notifications=NotificationService(
            weather_db, cache, reports, weather_client, location_resolver, AlertAnalyst(llm),
        ),
        chat=ChatService(
            weather_db,
            weather_client,
            location_resolver,
            QuestionResolver(llm),
            ResponseComposer(llm, wait=wait_none()),
        ),
    )


@pytest.fixture
def client(container):
    with TestClient(create_app(container=container)) as test_client:
        yield test_client


class TestRoot:
    def test_liveness(self, client):
        response = client.get('/')
        assert response.status_code == 200
        assert 'running' in response.text


class TestWeatherRoutes:
    """Tests for the direct weather endpoints."""

    def test_current_weather_for_named_location(self, client, weather_client, location_resolver, weather_db):
        response = client.get('/api/weather/current', params={'location': 'Hanoi'})

        assert response.status_code == 200
        body = response.json()
        assert body['message'] == 'Current weather retrieved from API and saved to database'
        assert body['data'] == {'report': 'current', 'q': '21.03,105.85'}
        assert location_resolver.searches == ['Hanoi']
        assert weather_client.calls == [(ReportType.CURRENT, {'q': '21.03,105.85', 'aqi': 'yes'})]
        assert weather_db.count_weather_records() == 1
        assert weather_db.find_latest_weather_record(
            ReportType.CURRENT,
            LocationKey.for_city('Hà Nội, Vietnam'),
            AuxiliaryKey(),
            utcnow().replace(year=2000),
        ) is not None

    def test_repeat_request_is_served_from_database(self, client, weather_client):
        first = client.get('/api/weather/current', params={'location': 'Hanoi'}).json()
        second = client.get('/api/weather/current', params={'location': 'Hanoi'}).json()

        assert second['message'] == 'Current weather retrieved from database'
        assert second['data'] == first['data']
        assert len(weather_client.calls) == 1

    def test_forecast_days_out_of_range(self, client, weather_client, location_resolver):
        response = client.get('/api/weather/forecast', params={'location': 'Hue', 'days': '20'})

        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_request'
        assert weather_client.calls == []
        assert location_resolver.searches == []

    def test_history_before_floor(self, client, weather_client, location_resolver):
        response = client.get('/api/weather/history', params={'q': 'Hanoi', 'dt': '2005-01-01'})

        assert response.status_code == 400
        assert weather_client.calls == []
        assert location_resolver.searches == []

    def test_history(self, client, weather_client):
        response = client.get('/api/weather/history', params={'location': 'Hanoi', 'date': '2024-01-02'})

        assert response.status_code == 200
        assert weather_client.calls == [(ReportType.HISTORY, {'q': '21.03,105.85', 'dt': '2024-01-02'})]

    def test_unpaired_coordinates(self, client):
        response = client.get('/api/weather/current', params={'lat': '21.03'})

        assert response.status_code == 400
        assert response.json() == {
            'error': 'invalid_request',
            'message': 'Latitude and longitude must be provided together.',
        }

    def test_coordinates(self, client, weather_client, location_resolver):
        response = client.get('/api/weather/timezone', params={'lat': '21.03', 'lon': '105.85'})

        assert response.status_code == 200
        assert location_resolver.searches == []
        assert weather_client.calls == [(ReportType.TIMEZONE, {'q': '21.03,105.85'})]

    def test_future_requires_date(self, client):
        assert client.get('/api/weather/future', params={'location': 'Hanoi'}).status_code == 400
        response = client.get('/api/weather/future', params={'location': 'Hanoi', 'dt': '2024-08-01'})
        assert response.status_code == 200

    def test_unknown_location(self, client, weather_client):
        response = client.get('/api/weather/alerts', params={'location': 'Atlantis'})

        assert response.status_code == 404
        assert response.json()['error'] == 'location_not_found'
        assert weather_client.calls == []

    def test_upstream_client_error_keeps_status(self, client, weather_client):
        weather_client.responses[ReportType.MARINE] = UpstreamApplicationError(
            'No matching location found.', upstream_status=400, upstream_code=1006,
        )

        response = client.get('/api/weather/marine', params={'location': 'Hanoi'})

        assert response.status_code == 400
        assert response.json() == {'error': 'upstream_error', 'message': 'No matching location found.'}

    def test_upstream_unavailable(self, client, weather_client):
        weather_client.responses[ReportType.ASTRONOMY] = UpstreamTransportError('timed out')

        response = client.get('/api/weather/astronomy', params={'location': 'Hanoi'})

        assert response.status_code == 503
        assert response.json()['error'] == 'upstream_unavailable'

    def test_seven_day_not_configured(self, client):
        response = client.get('/api/weather/forecast/7days', params={'location': 'Hanoi'})

        assert response.status_code == 503
        assert response.json()['error'] == 'service_not_configured'

    def test_unexpected_error(self, container, weather_client):
        weather_client.responses[ReportType.CURRENT] = RuntimeError('boom')
        with TestClient(create_app(container=container), raise_server_exceptions=False) as client:
            response = client.get('/api/weather/current', params={'location': 'Hanoi'})

        assert response.status_code == 500
        assert response.json()['error'] == 'internal_error'


class TestNotificationRoutes:
    """Tests for notification and subscription endpoints."""

    def test_list(self, client, weather_client):
        weather_client.responses[ReportType.ALERTS] = {'alerts': {'alert': ALERT}}

        response = client.get('/api/weather/notifications', params={'location': 'Hanoi', 'severity': 'moderate'})

        assert response.status_code == 200
        data = response.json()['data']
        assert data['total'] == 1
        assert data['alerts'][0]['title'] == 'Flood watch'

    def test_list_rejects_bad_severity(self, client):
        response = client.get('/api/weather/notifications', params={'location': 'Hanoi', 'severity': 'huge'})
        assert response.status_code == 400

    def test_detail(self, client, weather_client):
        weather_client.responses[ReportType.ALERTS] = {'alerts': {'alert': [ALERT]}}

        response = client.get('/api/weather/notifications/detail', params={
            'location': 'Hanoi', 'alertId': alert_identifier(ALERT),
        })

        assert response.status_code == 200
        assert response.json()['data']['additional_info']['risk_analysis']['level'] == 'Unknown'

    def test_detail_requires_alert_id(self, client):
        response = client.get('/api/weather/notifications/detail', params={'location': 'Hanoi'})
        assert response.status_code == 400

    def test_detail_unknown_alert(self, client, weather_client):
        weather_client.responses[ReportType.ALERTS] = {'alerts': {'alert': []}}
        response = client.get('/api/weather/notifications/detail', params={'location': 'Hanoi', 'alertId': 'x'})

        assert response.status_code == 404
        assert response.json()['error'] == 'not_found'

    def test_subscribe_and_unsubscribe(self, client):
        response = client.post('/api/weather/notifications/subscribe', json={
            'deviceId': 'device-1', 'location': 'Hanoi', 'severity': 'severe',
            'types': ['flood'], 'fcmToken': 'token',
        })
        assert response.status_code == 200
        assert response.json()['data']['location'] == 'Hà Nội, Vietnam'

        response = client.post('/api/weather/notifications/unsubscribe', json={'deviceId': 'device-1'})
        assert response.status_code == 200
        assert response.json()['data'] == {'deviceId': 'device-1', 'deactivated': 1}

        response = client.post('/api/weather/notifications/unsubscribe', json={'deviceId': 'device-1'})
        assert response.status_code == 404

    @pytest.mark.parametrize('body', [
        {'location': 'Hanoi'},
        {'deviceId': 'device-1'},
        {'deviceId': 'device-1', 'location': 'Hanoi', 'severity': 'apocalyptic'},
    ])
    def test_subscribe_validation(self, client, body, location_resolver):
        response = client.post('/api/weather/notifications/subscribe', json=body)

        assert response.status_code == 400
        assert location_resolver.searches == []

    def test_subscribe_unknown_location(self, client):
        response = client.post('/api/weather/notifications/subscribe', json={
            'deviceId': 'device-1', 'location': 'Atlantis',
        })
        assert response.status_code == 404


class TestChatRoutes:
    """Tests for the chat endpoints."""

    def test_chat_and_history(self, client):
        response = client.post('/api/chat', json={'question': 'Weather in Hanoi?', 'sessionId': 'abc'})

        assert response.status_code == 200
        data = response.json()['data']
        assert data['sessionId'] == 'abc'
        assert data['resolvedIntent']['type'] == 'current'
        assert data['answer']

        response = client.get('/api/chat/history', params={'sessionId': 'abc'})
        assert response.status_code == 200
        assert [item['question'] for item in response.json()['data']] == ['Weather in Hanoi?']

    def test_chat_requires_question(self, client):
        response = client.post('/api/chat', json={'city': 'Hanoi'})
        assert response.status_code == 400
        assert response.json()['message'] == 'Question is required.'

    def test_malformed_body(self, client):
        response = client.post('/api/chat', content='not json', headers={'content-type': 'application/json'})
        assert response.status_code == 400
        assert response.json()['error'] == 'invalid_request'

    def test_history_requires_session(self, client):
        assert client.get('/api/chat/history').status_code == 400


class TestApplicationFactory:
    def test_requires_container_or_settings(self):
        with pytest.raises(ValueError):
            create_app()

    def test_builds_services_from_settings(self, tmp_path):
        settings = Settings(
            weatherapi_key='weather',
            geoapify_key='geo',
            db_path=str(tmp_path / 'app.db'),
            llm_api_key='gemini',
        )
        app = create_app(settings=settings)

        with TestClient(app) as test_client:
            assert test_client.get('/').status_code == 200
            assert isinstance(app.state.container.reports, WeatherReportService)

        assert (tmp_path / 'app.db').exists()
