from __future__ import annotations

import csv
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from stopboard.app.ports.output import IGtfsRepository
from stopboard.domain.exceptions import StaticDataMissing
from stopboard.domain.models import (
    CalendarEntry,
    CalendarException,
    GtfsFeed,
    GtfsRoute,
    GtfsTrip,
    RawStop,
    ScheduledStopTime,
)

logger = logging.getLogger(__name__)

_WEEKDAY_COLUMNS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def _parse_gtfs_time_to_seconds(raw: str) -> int:
    # GTFS time can be HH:MM:SS with HH possibly > 24.
    hh, mm, ss = raw.strip().split(":")
    return int(hh) * 3600 + int(mm) * 60 + int(ss)


def _clean(row: dict[str, str], key: str) -> str | None:
    return (row.get(key) or "").strip() or None


def _read_rows(path: Path) -> Iterator[dict[str, str]]:
    # utf-8-sig: many agency exports start with a BOM.
    with path.open("r", encoding="utf-8-sig", newline="") as fp:
        yield from csv.DictReader(fp)


def _read_routes(path: Path) -> list[GtfsRoute]:
    if not path.exists():
        return []
    routes: list[GtfsRoute] = []
    for row in _read_rows(path):
        route_id = _clean(row, "route_id")
        short_name = _clean(row, "route_short_name")
        if not route_id and not short_name:
            continue
        routes.append(
            GtfsRoute(
                route_id=route_id or short_name or "",
                short_name=short_name,
                long_name=_clean(row, "route_long_name"),
                color=_clean(row, "route_color"),
                text_color=_clean(row, "route_text_color"),
            )
        )
    return routes


@dataclass(slots=True)
class LocalGtfsRepository(IGtfsRepository):
    """Loads a GTFS feed from a directory of .txt files.

    Env vars:
      - GTFS_PATH: directory containing stops.txt, stop_times.txt, trips.txt, ...
      - GTFS_OVERLAY_PATH: directory whose routes.txt supplies colors by short name

    stops.txt and stop_times.txt are required; every other file is optional.
    """

    base_path: str | Path | None = None
    overlay_path: str | Path | None = None

    def _base(self) -> Path:
        value = self.base_path or os.getenv("GTFS_PATH") or "data/gtfs"
        return Path(value)

    def _overlay(self) -> Path:
        value = self.overlay_path or os.getenv("GTFS_OVERLAY_PATH") or "data/gtfs2"
        return Path(value)

    def load_feed(self) -> GtfsFeed:
        base = self._base()

        stops_path = base / "stops.txt"
        stop_times_path = base / "stop_times.txt"
        for required in (stops_path, stop_times_path):
            if not required.exists():
                raise StaticDataMissing(f"Missing GTFS file: {required}")

        routes_by_id = {r.route_id: r for r in _read_routes(base / "routes.txt")}

        overlay_by_short: dict[str, GtfsRoute] = {}
        for route in _read_routes(self._overlay() / "routes.txt"):
            if route.short_name:
                overlay_by_short[route.short_name] = route

        trips_by_id: dict[str, GtfsTrip] = {}
        trips_path = base / "trips.txt"
        if trips_path.exists():
            for row in _read_rows(trips_path):
                trip_id = _clean(row, "trip_id")
                if not trip_id:
                    continue
                trips_by_id[trip_id] = GtfsTrip(
                    trip_id=trip_id,
                    route_id=_clean(row, "route_id"),
                    service_id=_clean(row, "service_id"),
                    headsign=_clean(row, "trip_headsign"),
                )

        stops_by_id: dict[str, RawStop] = {}
        for row in _read_rows(stops_path):
            stop_id = _clean(row, "stop_id")
            if not stop_id:
                continue
            stops_by_id[stop_id] = RawStop(
                id=stop_id,
                name=_clean(row, "stop_name") or stop_id,
                platform_code=_clean(row, "platform_code"),
                stop_code=_clean(row, "stop_code"),
            )

        by_stop: dict[str, list[ScheduledStopTime]] = {}
        for row in _read_rows(stop_times_path):
            trip_id = _clean(row, "trip_id")
            stop_id = _clean(row, "stop_id")
            if not trip_id or not stop_id:
                continue
            raw_time = _clean(row, "departure_time") or _clean(row, "arrival_time")
            if raw_time is None:
                # Untimed intermediate stop.
                continue
            try:
                time_s = _parse_gtfs_time_to_seconds(raw_time)
                seq = int(row.get("stop_sequence") or 0)
            except ValueError:
                continue
            by_stop.setdefault(stop_id, []).append(
                ScheduledStopTime(
                    trip_id=trip_id, stop_id=stop_id, time_s=time_s, sequence=seq
                )
            )

        stop_times_by_stop = {
            stop_id: tuple(sorted(entries, key=lambda st: (st.time_s, st.sequence)))
            for stop_id, entries in by_stop.items()
        }

        calendar: list[CalendarEntry] = []
        calendar_path = base / "calendar.txt"
        if calendar_path.exists():
            for row in _read_rows(calendar_path):
                service_id = _clean(row, "service_id")
                if not service_id:
                    continue
                flags = tuple(_clean(row, col) == "1" for col in _WEEKDAY_COLUMNS)
                calendar.append(
                    CalendarEntry(
                        service_id=service_id,
                        weekdays=flags,  # type: ignore[arg-type]
                        start_date=_clean(row, "start_date") or "",
                        end_date=_clean(row, "end_date") or "",
                    )
                )

        exceptions: list[CalendarException] = []
        calendar_dates_path = base / "calendar_dates.txt"
        if calendar_dates_path.exists():
            for row in _read_rows(calendar_dates_path):
                service_id = _clean(row, "service_id")
                raw_date = _clean(row, "date")
                if not service_id or not raw_date:
                    continue
                try:
                    exception_type = int(row.get("exception_type") or 0)
                except ValueError:
                    continue
                exceptions.append(
                    CalendarException(
                        service_id=service_id,
                        date=raw_date,
                        exception_type=exception_type,
                    )
                )

        logger.info(
            "GTFS feed loaded",
            extra={
                "path": str(base),
                "stops": len(stops_by_id),
                "trips": len(trips_by_id),
                "stop_times": sum(len(v) for v in stop_times_by_stop.values()),
            },
        )

        return GtfsFeed(
            stops_by_id=stops_by_id,
            routes_by_id=routes_by_id,
            trips_by_id=trips_by_id,
            stop_times_by_stop=stop_times_by_stop,
            calendar=tuple(calendar),
            calendar_exceptions=tuple(exceptions),
            overlay_routes_by_short_name=overlay_by_short,
        )
