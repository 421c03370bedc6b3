"""Direct weather report endpoints, mounted under ``/api/weather``."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from src.services.weather_service import WeatherReportService
from src.tools.data_tools.weather_db.models import ReportType

from ..dependencies import envelope, get_reports
from ..validation import HISTORY_FLOOR, parse_date, parse_days, parse_location


router = APIRouter(prefix='/weather', tags=['weather'])

Reports = Annotated[WeatherReportService, Depends(get_reports)]
OptionalStr = Annotated[str | None, Query()]


@router.get('/current')
async def current_weather(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_report(ReportType.CURRENT, query)
    return envelope('Current weather', data, cached)


@router.get('/forecast/7days')
async def seven_day_forecast(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_seven_day_forecast(query)
    return envelope('7-day forecast', data, cached)


@router.get('/forecast')
async def forecast(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
    days: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_report(ReportType.FORECAST, query, days=parse_days(days))
    return envelope('Forecast', data, cached)


@router.get('/future')
async def future_weather(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
    date: OptionalStr = None,
    dt: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    on = parse_date(date or dt, required=True)
    data, cached = await reports.get_report(ReportType.FUTURE, query, on=on)
    return envelope('Future weather', data, cached)


@router.get('/marine')
async def marine_weather(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_report(ReportType.MARINE, query)
    return envelope('Marine weather', data, cached)


@router.get('/astronomy')
async def astronomy(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
    date: OptionalStr = None,
    dt: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    on = parse_date(date or dt)
    data, cached = await reports.get_report(ReportType.ASTRONOMY, query, on=on)
    return envelope('Astronomy data', data, cached)


@router.get('/timezone')
async def timezone(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_report(ReportType.TIMEZONE, query)
    return envelope('Timezone data', data, cached)


@router.get('/alerts')
async def weather_alerts(
    reports: Reports,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
):
    query = parse_location(location, lat, lon)
    data, cached = await reports.get_report(ReportType.ALERTS, query)
    return envelope('Weather alerts', data, cached)


@router.get('/history')
async def weather_history(
    reports: Reports,
    q: OptionalStr = None,
    location: OptionalStr = None,
    lat: OptionalStr = None,
    lon: OptionalStr = None,
    dt: OptionalStr = None,
    date: OptionalStr = None,
):
    query = parse_location(q or location, lat, lon)
    on = parse_date(dt or date, required=True, floor=HISTORY_FLOOR)
    data, cached = await reports.get_report(ReportType.HISTORY, query, on=on)
    return envelope('Weather history', data, cached)
