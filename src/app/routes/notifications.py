"""Alert notification and subscription endpoints, mounted under ``/api/weather``."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.services.notification_service import NotificationService
from src.tools.shared_libraries.errors import ValidationError

from ..dependencies import envelope, get_notifications
from ..validation import parse_location, parse_severity


router = APIRouter(prefix='/weather/notifications', tags=['notifications'])

Notifications = Annotated[NotificationService, Depends(get_notifications)]
OptionalStr = Annotated[str | None, Query()]


class SubscribeRequest(BaseModel):
    deviceId: str | None = None
    location: str | None = None
    severity: str | None = None
    types: list[str] | None = None
    fcmToken: str | None = None


class UnsubscribeRequest(BaseModel):
    deviceId: str | None = None


@router.get('')
async def list_notifications(
    notifications: Notifications,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
    severity: OptionalStr = None,
    type: OptionalStr = None,
    area: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await notifications.list_notifications(
        query,
        severity=parse_severity(severity),
        alert_type=type,
        area=area,
    )
    return envelope('Weather notifications', data, cached)


@router.get('/detail')
async def notification_detail(
    notifications: Notifications,
    alertId: OptionalStr = None,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    if not alertId:
        raise ValidationError('Alert ID is required.')
    query = parse_location(location, lat, lon)
    data, cached = await notifications.get_detail(query, alertId)
    return envelope('Notification detail', data, cached)


@router.post('/subscribe')
async def subscribe(body: SubscribeRequest, notifications: Notifications):
    if not body.deviceId or not body.location:
        raise ValidationError('Device ID and location are required.')
    severity = parse_severity(body.severity)
    subscription = await notifications.subscribe(
        body.deviceId,
        body.location,
        severity=severity,
        types=body.types,
        push_token=body.fcmToken,
    )
    return {'message': 'Subscribed to weather alerts', 'data': subscription.to_dict()}


@router.post('/unsubscribe')
async def unsubscribe(body: UnsubscribeRequest, notifications: Notifications):
    if not body.deviceId:
        raise ValidationError('Device ID is required.')
    count = await notifications.unsubscribe(body.deviceId)
    return {
        'message': 'Unsubscribed from weather alerts',
        'data': {'deviceId': body.deviceId, 'deactivated': count},
    }
