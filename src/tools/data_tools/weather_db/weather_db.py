"""Weather Database Tool - SQLite operations for cached reports, chats and subscriptions."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path

from observability import trace_tool
from src.tools.shared_libraries.helpers import get_timestamp, parse_timestamp

from .models import (
    SCHEMA_SQL,
    AlertSubscription,
    AuxiliaryKey,
    ChatRecord,
    LocationKey,
    ReportType,
    WeatherRecord,
)


CHAT_HISTORY_LIMIT = 50


class WeatherDb:
    """Synchronous SQLite store. Every operation opens its own connection."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.init_db()

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Initialize the database with required tables."""
        conn = self.get_connection()
        try:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        finally:
            conn.close()

    # Weather records -------------------------------------------------------

    @trace_tool(name='db.insert_weather_record', capture_input=False)
    def insert_weather_record(self, record: WeatherRecord) -> int:
        """Insert a weather record and return its row id."""
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO weather_records
                (report_type, city, latitude, longitude, days, date, alert_id,
                 source, fetched_at, payload_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.report_type.value,
                    record.location_key.city,
                    record.location_key.latitude,
                    record.location_key.longitude,
                    record.auxiliary_key.days,
                    record.auxiliary_key.date,
                    record.auxiliary_key.alert_id,
                    record.source,
                    get_timestamp(record.fetched_at),
                    json.dumps(record.payload, ensure_ascii=False),
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    @trace_tool(name='db.find_latest_weather_record', capture_output=False)
    def find_latest_weather_record(
        self,
        report_type: ReportType,
        location_key: LocationKey,
        auxiliary_key: AuxiliaryKey,
        fetched_since: datetime,
    ) -> WeatherRecord | None:
        """Return the newest record matching every key field, fetched at or after ``fetched_since``.

        Key fields use ``IS`` so that an absent discriminator only matches
        records where it is absent too.
        """
        conn = self.get_connection()
        try:
            row = conn.execute(
                """
                SELECT *
                FROM weather_records
                WHERE report_type = ?
                  AND city IS ?
                  AND latitude IS ?
                  AND longitude IS ?
                  AND days IS ?
                  AND date IS ?
                  AND alert_id IS ?
                  AND fetched_at >= ?
                ORDER BY fetched_at DESC, id DESC
                LIMIT 1
                """,
                (
                    report_type.value,
                    location_key.city,
                    location_key.latitude,
                    location_key.longitude,
                    auxiliary_key.days,
                    auxiliary_key.date,
                    auxiliary_key.alert_id,
                    get_timestamp(fetched_since),
                ),
            ).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return WeatherRecord(
            id=row['id'],
            report_type=ReportType(row['report_type']),
            location_key=location_key,
            auxiliary_key=auxiliary_key,
            fetched_at=parse_timestamp(row['fetched_at']),
            payload=json.loads(row['payload_json']),
            source=row['source'],
        )

    def count_weather_records(self, report_type: ReportType | None = None) -> int:
        conn = self.get_connection()
        try:
            if report_type is None:
                row = conn.execute('SELECT COUNT(*) FROM weather_records').fetchone()
            else:
                row = conn.execute(
                    'SELECT COUNT(*) FROM weather_records WHERE report_type = ?',
                    (report_type.value,),
                ).fetchone()
            return int(row[0])
        finally:
            conn.close()

    # Chat records -----------------------------------------------------------

    @trace_tool(name='db.save_chat_record', capture_input=False)
    def insert_chat_record(self, record: ChatRecord) -> int:
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO chat_records
                (session_id, question, answer, resolved_intent_json,
                 weather_snapshot_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.session_id,
                    record.question,
                    record.answer,
                    json.dumps(record.resolved_intent, ensure_ascii=False),
                    json.dumps(record.weather_snapshot, ensure_ascii=False, default=str),
                    get_timestamp(record.created_at),
                ),
            )
            conn.commit()
            return cursor.lastrowid
        finally:
            conn.close()

    @trace_tool(name='db.get_chat_history', capture_output=False)
    def list_chat_records(self, session_id: str, limit: int = CHAT_HISTORY_LIMIT) -> list[ChatRecord]:
        """Get a session's chat records, newest first."""
        conn = self.get_connection()
        try:
            rows = conn.execute(
                """
                SELECT *
                FROM chat_records
                WHERE session_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (session_id, limit),
            ).fetchall()
        finally:
            conn.close()

        return [
            ChatRecord(
                id=row['id'],
                session_id=row['session_id'],
                question=row['question'],
                answer=row['answer'],
                resolved_intent=json.loads(row['resolved_intent_json'] or 'null'),
                weather_snapshot=json.loads(row['weather_snapshot_json'] or 'null'),
                created_at=parse_timestamp(row['created_at']),
            )
            for row in rows
        ]

    # Alert subscriptions ----------------------------------------------------

    @trace_tool(name='db.save_subscription', capture_input=False)
    def insert_subscription(self, subscription: AlertSubscription) -> AlertSubscription:
        now = get_timestamp()
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                INSERT INTO alert_subscriptions
                (device_id, push_token, location_name, latitude, longitude,
                 severity, types_json, active, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
                """,
                (
                    subscription.device_id,
                    subscription.push_token,
                    subscription.location_name,
                    subscription.latitude,
                    subscription.longitude,
                    subscription.severity_filter,
                    json.dumps(subscription.type_filters),
                    now,
                    now,
                ),
            )
            conn.commit()
            subscription_id = cursor.lastrowid
        finally:
            conn.close()

        return AlertSubscription(
            id=subscription_id,
            device_id=subscription.device_id,
            push_token=subscription.push_token,
            location_name=subscription.location_name,
            latitude=subscription.latitude,
            longitude=subscription.longitude,
            severity_filter=subscription.severity_filter,
            type_filters=list(subscription.type_filters),
            active=True,
            created_at=now,
            updated_at=now,
        )

    def deactivate_subscriptions(self, device_id: str) -> int:
        """Soft-delete every active subscription of a device.

        Returns:
            Number of subscriptions switched to inactive.
        """
        conn = self.get_connection()
        try:
            cursor = conn.execute(
                """
                UPDATE alert_subscriptions
                SET active = 0, updated_at = ?
                WHERE device_id = ? AND active = 1
                """,
                (get_timestamp(), device_id),
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()

    def list_subscriptions(self, device_id: str, active_only: bool = True) -> list[AlertSubscription]:
        conn = self.get_connection()
        try:
            query = 'SELECT * FROM alert_subscriptions WHERE device_id = ?'
            if active_only:
                query += ' AND active = 1'
            rows = conn.execute(query + ' ORDER BY id', (device_id,)).fetchall()
        finally:
            conn.close()

        return [
            AlertSubscription(
                id=row['id'],
                device_id=row['device_id'],
                push_token=row['push_token'],
                location_name=row['location_name'],
                latitude=row['latitude'],
                longitude=row['longitude'],
                severity_filter=row['severity'],
                type_filters=json.loads(row['types_json'] or '[]'),
                active=bool(row['active']),
                created_at=row['created_at'],
                updated_at=row['updated_at'],
            )
            for row in rows
        ]
