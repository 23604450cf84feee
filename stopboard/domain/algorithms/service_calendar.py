from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from stopboard.domain.models.gtfs import (
    EXCEPTION_ADDED,
    EXCEPTION_REMOVED,
    CalendarEntry,
    CalendarException,
)

logger = logging.getLogger(__name__)


def parse_gtfs_date(raw: str) -> date:
    # GTFS dates are YYYYMMDD.
    return datetime.strptime(raw.strip(), "%Y%m%d").date()


def active_service_ids(
    calendar: Iterable[CalendarEntry],
    exceptions: Iterable[CalendarException],
    reference: date | datetime,
    *,
    fallback_service_ids: Iterable[str] = (),
) -> frozenset[str]:
    """Return the service ids running on the reference date.

    Weekly patterns are applied first, then calendar_dates removals, then
    additions. Rows with unparsable dates are logged and skipped.

    When neither calendar nor exceptions are available, every service id in
    `fallback_service_ids` is treated as active. A feed that ships only
    calendar_dates rows gets no fallback: its exceptions alone decide.
    """

    day = reference.date() if isinstance(reference, datetime) else reference
    calendar = tuple(calendar)
    exceptions = tuple(exceptions)

    if not calendar and not exceptions:
        return frozenset(fallback_service_ids)

    weekday = day.weekday()
    active: set[str] = set()
    for entry in calendar:
        if not entry.weekdays[weekday]:
            continue
        try:
            start = parse_gtfs_date(entry.start_date)
            end = parse_gtfs_date(entry.end_date)
        except ValueError:
            logger.warning(
                "Skipping calendar entry with malformed dates",
                extra={
                    "service_id": entry.service_id,
                    "start_date": entry.start_date,
                    "end_date": entry.end_date,
                },
            )
            continue
        if start <= day <= end:
            active.add(entry.service_id)

    removed: set[str] = set()
    added: set[str] = set()
    for exc in exceptions:
        try:
            exc_day = parse_gtfs_date(exc.date)
        except ValueError:
            logger.warning(
                "Skipping calendar exception with malformed date",
                extra={"service_id": exc.service_id, "date": exc.date},
            )
            continue
        if exc_day != day:
            continue
        if exc.exception_type == EXCEPTION_REMOVED:
            removed.add(exc.service_id)
        elif exc.exception_type == EXCEPTION_ADDED:
            added.add(exc.service_id)

    return frozenset((active - removed) | added)
