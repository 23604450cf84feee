from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from stopboard.app.ports.output import ITripUpdateProvider
from stopboard.domain.algorithms.service_calendar import active_service_ids
from stopboard.domain.algorithms.stop_names import resolve_place, stop_platform
from stopboard.domain.exceptions import FeedUnavailable, StaticDataMissing
from stopboard.domain.models import (
    Departure,
    DepartureSnapshot,
    GtfsFeed,
    GtfsTrip,
    Place,
)

from .departure_helpers import (
    DEFAULT_REALTIME_COLOR,
    DEFAULT_SCHEDULED_COLOR,
    candidate_service_days,
    route_color,
    service_epoch_s,
)
from .timetable_snapshot import TimetableSnapshot

logger = logging.getLogger(__name__)


def _platform_matches(platform: str | None, wanted: str | None) -> bool:
    return not wanted or str(platform) == str(wanted)


@dataclass(slots=True)
class DepartureReconciler:
    """Merges real-time predictions and the static schedule for one place.

    - Every member stop of the place is queried.
    - Real-time predictions win over scheduled times for the same trip.
    - The result holds at most one departure per trip, sorted by time.
    - A failing real-time feed degrades the result to scheduled-only.

    Windows are inclusive on both ends and use absolute epoch seconds for
    both passes. Scheduled times are placed on yesterday's, today's and
    tomorrow's service day in `timezone`, each with its own active services.
    """

    snapshot: TimetableSnapshot | None = None
    update_provider: ITripUpdateProvider | None = None
    timezone: str = "Europe/Paris"
    default_window_minutes: int = 120

    def _require_snapshot(self) -> TimetableSnapshot:
        if self.snapshot is None:
            raise StaticDataMissing("Static timetable not loaded")
        return self.snapshot

    def _now(self, now: datetime | None) -> datetime:
        tz = ZoneInfo(self.timezone)
        if now is None:
            return datetime.now(tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=tz)
        return now.astimezone(tz)

    def resolve_place(self, ref: str | Place | None) -> Place | None:
        if isinstance(ref, Place):
            return ref
        return resolve_place(self._require_snapshot().places, ref)

    async def collect_departures(
        self,
        place: str | Place | None,
        platform_filter: str | None = None,
        window_minutes: int | None = None,
        *,
        now: datetime | None = None,
    ) -> list[Departure]:
        result = await self.collect_snapshot(
            place, platform_filter, window_minutes, now=now
        )
        return list(result.departures)

    async def collect_snapshot(
        self,
        place: str | Place | None,
        platform_filter: str | None = None,
        window_minutes: int | None = None,
        *,
        now: datetime | None = None,
    ) -> DepartureSnapshot:
        snapshot = self._require_snapshot()
        now = self._now(now)
        window = int(window_minutes or self.default_window_minutes)
        platform_filter = platform_filter or None

        resolved = self.resolve_place(place)
        if resolved is None:
            return DepartureSnapshot(
                place=None,
                generated_at=now,
                platform_filter=platform_filter,
                window_minutes=window,
            )

        now_s = int(now.timestamp())
        end_s = now_s + window * 60

        feed_error: str | None = None
        realtime: list[Departure] = []
        covered_trip_ids: set[str] = set()
        try:
            realtime, covered_trip_ids = await self._realtime_departures(
                snapshot.feed, resolved, platform_filter, now_s, end_s
            )
        except FeedUnavailable as exc:
            feed_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Real-time feed unavailable; using scheduled departures only",
                extra={"place": resolved.key, "error": feed_error},
            )

        scheduled = self._scheduled_departures(
            snapshot.feed,
            resolved,
            platform_filter,
            now,
            now_s,
            end_s,
            skip_trip_ids=covered_trip_ids,
        )

        departures = sorted(
            [*realtime, *scheduled], key=lambda d: d.departure_epoch_s
        )
        return DepartureSnapshot(
            place=resolved,
            generated_at=now,
            departures=tuple(departures),
            feed_error=feed_error,
            platform_filter=platform_filter,
            window_minutes=window,
        )

    async def _realtime_departures(
        self,
        feed: GtfsFeed,
        place: Place,
        platform_filter: str | None,
        now_s: int,
        end_s: int,
    ) -> tuple[list[Departure], set[str]]:
        """Return real-time departures and every trip the feed predicts here in the window.

        Covered trips include those dropped by the platform filter, so the
        schedule never resurrects a trip the feed has moved to another platform.
        """

        if self.update_provider is None:
            return [], set()

        updates = await self.update_provider.list_stop_updates()
        members = frozenset(place.member_stop_ids)

        out: list[Departure] = []
        seen_trip_ids: set[str] = set()
        covered: set[str] = set()
        for update in updates:
            if update.stop_id not in members:
                continue
            ts = update.predicted_epoch_s
            if not ts or ts < now_s or ts > end_s:
                continue
            covered.add(update.trip_id)

            platform = update.platform
            if not platform:
                stop = feed.stops_by_id.get(update.stop_id)
                platform = stop_platform(stop) if stop is not None else None
            if not _platform_matches(platform, platform_filter):
                continue

            # One row per trip: the first qualifying update wins.
            if update.trip_id in seen_trip_ids:
                continue
            seen_trip_ids.add(update.trip_id)

            # Headsigns come from the static trip.
            trip = feed.trips_by_id.get(update.trip_id)
            route_id = update.route_id or (trip.route_id if trip else None)
            route = feed.routes_by_id.get(route_id) if route_id else None
            short_name = update.route_short_name or (
                route.short_name if route else None
            )
            overlay = (
                feed.overlay_routes_by_short_name.get(short_name)
                if short_name
                else None
            )

            out.append(
                Departure(
                    trip_id=update.trip_id,
                    route_id=route_id,
                    route_short_name=short_name,
                    headsign=(trip.headsign if trip else None) or "",
                    stop_id=update.stop_id,
                    platform=platform,
                    departure_epoch_s=int(ts),
                    color=route_color(route)
                    or route_color(overlay)
                    or DEFAULT_REALTIME_COLOR,
                    provenance="realtime",
                )
            )
        return out, covered

    def _scheduled_departures(
        self,
        feed: GtfsFeed,
        place: Place,
        platform_filter: str | None,
        now: datetime,
        now_s: int,
        end_s: int,
        *,
        skip_trip_ids: set[str],
    ) -> list[Departure]:
        tz = now.tzinfo or ZoneInfo(self.timezone)

        days = candidate_service_days(now)
        fallback = feed.service_ids()
        active_by_day = {
            day: active_service_ids(
                feed.calendar,
                feed.calendar_exceptions,
                day,
                fallback_service_ids=fallback,
            )
            for day in days
        }

        candidates: list[tuple[int, str, GtfsTrip, str | None]] = []
        for stop_id in place.member_stop_ids:
            stop = feed.stops_by_id.get(stop_id)
            platform = stop_platform(stop) if stop is not None else None
            if not _platform_matches(platform, platform_filter):
                continue

            for st in feed.stop_times_by_stop.get(stop_id, ()):
                if st.trip_id in skip_trip_ids:
                    continue
                trip = feed.trips_by_id.get(st.trip_id)
                if trip is None or not trip.service_id:
                    continue
                for day in days:
                    if trip.service_id not in active_by_day[day]:
                        continue
                    dep_s = service_epoch_s(day, st.time_s, tz)
                    if dep_s < now_s or dep_s > end_s:
                        continue
                    candidates.append((dep_s, stop_id, trip, platform))

        candidates.sort(key=lambda c: c[0])

        out: list[Departure] = []
        emitted: set[str] = set()
        for dep_s, stop_id, trip, platform in candidates:
            # Loops and multi-day overlaps: keep the earliest call of a trip.
            if trip.trip_id in emitted:
                continue
            emitted.add(trip.trip_id)

            route = feed.routes_by_id.get(trip.route_id) if trip.route_id else None
            short_name = route.short_name if route else None
            overlay = (
                feed.overlay_routes_by_short_name.get(short_name)
                if short_name
                else None
            )

            out.append(
                Departure(
                    trip_id=trip.trip_id,
                    route_id=trip.route_id,
                    route_short_name=short_name,
                    headsign=trip.headsign or "",
                    stop_id=stop_id,
                    platform=platform,
                    departure_epoch_s=dep_s,
                    color=route_color(overlay) or DEFAULT_SCHEDULED_COLOR,
                    provenance="scheduled",
                )
            )
        return out
