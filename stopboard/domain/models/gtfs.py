from __future__ import annotations

from dataclasses import dataclass, field

from .stop import RawStop

EXCEPTION_ADDED = 1
EXCEPTION_REMOVED = 2


@dataclass(frozen=True, slots=True)
class ScheduledStopTime:
    """A scheduled call of a trip at a stop.

    Times are seconds since service day midnight (GTFS time semantics; may exceed 24h).
    """

    trip_id: str
    stop_id: str
    time_s: int
    sequence: int = 0


@dataclass(frozen=True, slots=True)
class GtfsRoute:
    route_id: str
    short_name: str | None = None
    long_name: str | None = None
    color: str | None = None  # hex without '#'
    text_color: str | None = None  # hex without '#'


@dataclass(frozen=True, slots=True)
class GtfsTrip:
    trip_id: str
    route_id: str | None = None
    service_id: str | None = None
    headsign: str | None = None


@dataclass(frozen=True, slots=True)
class CalendarEntry:
    """One calendar.txt row.

    Dates are kept as the raw YYYYMMDD strings; they are parsed when the
    active service set is computed so a single bad row can be skipped.
    """

    service_id: str
    weekdays: tuple[bool, bool, bool, bool, bool, bool, bool]  # Monday first
    start_date: str
    end_date: str


@dataclass(frozen=True, slots=True)
class CalendarException:
    service_id: str
    date: str
    exception_type: int  # 1 = added, 2 = removed


@dataclass(frozen=True, slots=True)
class GtfsFeed:
    """In-memory representation of the subset of GTFS needed for departure boards."""

    stops_by_id: dict[str, RawStop]
    routes_by_id: dict[str, GtfsRoute]
    trips_by_id: dict[str, GtfsTrip]
    stop_times_by_stop: dict[str, tuple[ScheduledStopTime, ...]]
    calendar: tuple[CalendarEntry, ...] = ()
    calendar_exceptions: tuple[CalendarException, ...] = ()
    # Secondary route table, keyed by route_short_name (colors only).
    overlay_routes_by_short_name: dict[str, GtfsRoute] = field(default_factory=dict)

    def service_ids(self) -> frozenset[str]:
        return frozenset(t.service_id for t in self.trips_by_id.values() if t.service_id)
