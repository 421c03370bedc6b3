"""Alert Analyst - translates weather alerts and adds a risk analysis."""

import hashlib
import json
import logging
from typing import Any

from src.tools.api_tools.llm_api.llm_client import GenerativeClient
from src.tools.shared_libraries.helpers import dig, parse_json_object


logger = logging.getLogger(__name__)

TRANSLATED_FIELDS = ('headline', 'desc', 'instruction')

TRANSLATE_PROMPT = (
    'Translate the following weather alert into the language "{lang}", '
    'keeping the JSON format and the technical fields:\n'
    '{alert}\n'
    '\n'
    'Requirements:\n'
    '1. Only translate the fields headline, desc and instruction\n'
    '2. Keep technical fields and formatting unchanged\n'
    '3. Use natural, easy to understand wording\n'
    '\n'
    'Return JSON in this format:\n'
    '{{"headline": "...", "desc": "...", "instruction": "..."}}'
)

ANALYSIS_PROMPT = (
    'Based on the following weather alert, analyze it and add detailed information:\n'
    '{alert}\n'
    '\n'
    'Return JSON with:\n'
    '1. Risk level analysis\n'
    '2. Specific prevention measures\n'
    '3. Groups of people who should take care\n'
    '4. High-risk areas\n'
    '5. Impact time\n'
    '6. Reliable information sources\n'
    '7. Emergency phone numbers\n'
    '\n'
    'JSON format:\n'
    '{{\n'
    '  "risk_analysis": {{"level": "high/medium/low", "description": "..."}},\n'
    '  "prevention_measures": ["..."],\n'
    '  "affected_groups": ["..."],\n'
    '  "high_risk_areas": ["..."],\n'
    '  "impact_time": {{"start": "...", "peak": "...", "end": "..."}},\n'
    '  "reliable_sources": ["..."],\n'
    '  "emergency_contacts": ["..."]\n'
    '}}\n'
    'Answer in the language "{lang}".'
)


def extract_alerts(payload: Any) -> list[dict]:
    """Return the upstream alert list; a single alert object becomes a list."""
    alerts = dig(payload, 'alerts', 'alert')
    if isinstance(alerts, dict):
        return [alerts]
    if isinstance(alerts, list):
        return [alert for alert in alerts if isinstance(alert, dict)]
    return []


def alert_identifier(alert: dict) -> str:
    """Stable id of an alert.

    WeatherAPI.com alerts usually carry no id, so one is derived from the
    untranslated headline, event and validity window.
    """
    if alert.get('alert_id'):
        return str(alert['alert_id'])
    basis = '|'.join(
        str(alert.get(key) or '') for key in ('headline', 'event', 'effective', 'expires')
    )
    return hashlib.sha1(basis.encode('utf-8')).hexdigest()[:16]


def to_notification(alert: dict, alert_id: str | None = None) -> dict[str, Any]:
    """Map an upstream alert onto the notification shape served to clients."""
    return {
        'id': alert_id or alert_identifier(alert),
        'type': alert.get('alert_type') or alert.get('event'),
        'severity': alert.get('severity'),
        'title': alert.get('headline'),
        'description': alert.get('desc'),
        'area': alert.get('areas') or alert.get('area'),
        'startTime': alert.get('effective'),
        'endTime': alert.get('expires'),
        'source': alert.get('source') or alert.get('msgtype'),
        'instructions': alert.get('instruction'),
    }


def default_additional_info(notification: dict) -> dict[str, Any]:
    return {
        'risk_analysis': {
            'level': 'Unknown',
            'description': 'Unable to analyze the risk level',
        },
        'prevention_measures': ['No prevention information available'],
        'affected_groups': ['No information about affected groups'],
        'high_risk_areas': ['No information about high-risk areas'],
        'impact_time': {
            'start': notification.get('startTime'),
            'peak': 'Unknown',
            'end': notification.get('endTime'),
        },
        'reliable_sources': ['National hydro-meteorological service'],
        'emergency_contacts': ['112 - Emergency', '114 - Fire and rescue'],
    }


class AlertAnalyst:
    """Uses the chat model to translate and annotate alerts.

    Both operations fall back silently: an untranslated alert or the default
    analysis is returned when the model fails.
    """

    def __init__(self, llm: GenerativeClient, lang: str = 'en'):
        self._llm = llm
        self.lang = lang

    @property
    def translates(self) -> bool:
        return not self.lang.lower().startswith('en')

    async def translate(self, alert: dict) -> dict:
        """Translate headline, description and instruction into ``lang``."""
        if not self.translates:
            return alert

        prompt = TRANSLATE_PROMPT.format(
            lang=self.lang,
            alert=json.dumps(alert, ensure_ascii=False, indent=2),
        )
        try:
            raw = await self._llm.generate(prompt)
        except Exception as e:
            logger.error(f'Alert translation failed: {e}')
            return alert

        translation = parse_json_object(raw)
        if translation is None:
            return alert
        translated = dict(alert)
        for field in TRANSLATED_FIELDS:
            if isinstance(translation.get(field), str):
                translated[field] = translation[field]
        return translated

    async def analyze(self, notification: dict) -> dict[str, Any]:
        """Return the ``additional_info`` block for an alert detail."""
        default = default_additional_info(notification)
        prompt = ANALYSIS_PROMPT.format(
            lang=self.lang,
            alert=json.dumps(notification, ensure_ascii=False, indent=2),
        )
        try:
            raw = await self._llm.generate(prompt)
        except Exception as e:
            logger.error(f'Alert analysis failed: {e}')
            return default

        analysis = parse_json_object(raw)
        if analysis is None:
            return default
        return {key: analysis.get(key) or value for key, value in default.items()}
