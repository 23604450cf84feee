from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo

from stopboard.domain.models import GtfsRoute

DEFAULT_REALTIME_COLOR = "#333"
DEFAULT_SCHEDULED_COLOR = "#555"

def service_day_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=tz)

def service_epoch_s(day: date, seconds: int, tz: tzinfo) -> int:
    """Convert GTFS 'seconds since midnight' on a service day into epoch seconds.

    Supports times over 24h (e.g. 25:10) by rolling into the next day.
    """

    return int((service_day_midnight(day, tz) + timedelta(seconds=int(seconds))).timestamp())

def candidate_service_days(now: datetime) -> tuple[date, date, date]:
    # Yesterday covers >24h times still running after midnight; tomorrow covers
    # windows that cross midnight.
    today = now.date()
    return (today - timedelta(days=1), today, today + timedelta(days=1))


def format_color(raw: str | None) -> str | None:
    """Render a GTFS hex color as '#RRGGBB', padding short values with zeros."""

    value = (raw or "").strip().lstrip("#")
    if not value:
        return None
    return "#" + value.rjust(6, "0")

def route_color(route: GtfsRoute | None) -> str | None:
    if route is None:
        return None
    return format_color(route.color)
