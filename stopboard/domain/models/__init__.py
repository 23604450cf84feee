from .departure import Departure, DepartureSnapshot, Provenance
from .gtfs import (
    CalendarEntry,
    CalendarException,
    GtfsFeed,
    GtfsRoute,
    GtfsTrip,
    ScheduledStopTime,
)
from .realtime import RealtimeStopUpdate
from .stop import Place, RawStop

__all__ = [
    "CalendarEntry",
    "CalendarException",
    "Departure",
    "DepartureSnapshot",
    "GtfsFeed",
    "GtfsRoute",
    "GtfsTrip",
    "Place",
    "Provenance",
    "RawStop",
    "RealtimeStopUpdate",
    "ScheduledStopTime",
]
