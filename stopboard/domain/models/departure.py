from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Literal

from .stop import Place

Provenance = Literal["realtime", "scheduled"]


@dataclass(frozen=True, slots=True)
class Departure:
    trip_id: str
    route_id: str | None
    route_short_name: str | None
    headsign: str
    stop_id: str
    platform: str | None
    departure_epoch_s: int
    color: str
    provenance: Provenance

    @property
    def line_label(self) -> str:
        return self.route_short_name or self.route_id or "—"


@dataclass(frozen=True, slots=True)
class DepartureSnapshot:
    """Result of one reconciliation call.

    `place` is None when the requested reference matched no place.
    `feed_error` carries the real-time failure message when the
    departures are scheduled-only because the feed could not be read.
    """

    place: Place | None
    generated_at: datetime
    departures: tuple[Departure, ...] = ()
    feed_error: str | None = None
    platform_filter: str | None = None
    window_minutes: int = 0


def minutes_until(departure: Departure, now_epoch_s: int) -> int:
    return max(0, round((departure.departure_epoch_s - now_epoch_s) / 60))


def filter_by_line(
    departures: Iterable[Departure], line: str | None
) -> tuple[Departure, ...]:
    """Keep departures whose short name or route id equals `line`."""

    if not line:
        return tuple(departures)
    wanted = str(line)
    return tuple(
        d
        for d in departures
        if (d.route_short_name is not None and str(d.route_short_name) == wanted)
        or (d.route_id is not None and str(d.route_id) == wanted)
    )
