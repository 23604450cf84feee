from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Literal

from stopboard.app.ports.output import IGtfsRepository
from stopboard.domain.models import DepartureSnapshot

from .departure_reconciler import DepartureReconciler
from .timetable_snapshot import TimetableSnapshot

logger = logging.getLogger(__name__)

RefreshStatus = Literal["idle", "ok", "degraded", "error"]


@dataclass(frozen=True, slots=True)
class BoardTarget:
    place: str
    platform: str | None = None
    window_minutes: int | None = None


def _build_snapshot(repository: IGtfsRepository) -> TimetableSnapshot:
    return TimetableSnapshot.build(repository.load_feed())


@dataclass(slots=True)
class RefreshController:
    """Keeps the latest departure list for one board up to date.

    At most one refresh (or reload) runs at a time; a request arriving while
    another is in flight is dropped, not queued. Every retarget bumps
    `generation`, and a refresh started under an older generation does not
    overwrite the state when it completes.
    """

    reconciler: DepartureReconciler
    target: BoardTarget | None = None

    latest_result: DepartureSnapshot | None = None
    last_error: str | None = None
    in_flight: bool = False
    generation: int = 0

    _auto_task: asyncio.Task[None] | None = field(
        default=None, init=False, repr=False
    )
    _ticks: set[asyncio.Task[bool]] = field(
        default_factory=set, init=False, repr=False
    )

    @property
    def status(self) -> RefreshStatus:
        if self.last_error:
            return "error"
        if self.latest_result is None:
            return "idle"
        if self.latest_result.feed_error:
            return "degraded"
        return "ok"

    def retarget(
        self,
        place: str,
        platform: str | None = None,
        window_minutes: int | None = None,
    ) -> int:
        self.target = BoardTarget(
            place=place, platform=platform or None, window_minutes=window_minutes
        )
        self.generation += 1
        self.latest_result = None
        self.last_error = None
        return self.generation

    async def refresh(
        self,
        place: str | None = None,
        platform_filter: str | None = None,
        window_minutes: int | None = None,
    ) -> bool:
        """Run one reconciliation for the current target.

        Passing `place` retargets the board first. Returns False when the call
        was a no-op (another refresh in flight, no target, unresolved place).
        """

        if place is not None:
            wanted = BoardTarget(
                place=place,
                platform=platform_filter or None,
                window_minutes=window_minutes,
            )
            if wanted != self.target:
                self.retarget(place, platform_filter, window_minutes)

        if self.in_flight:
            logger.debug("Refresh skipped: previous refresh still in flight")
            return False

        target = self.target
        if target is None:
            return False

        generation = self.generation
        self.in_flight = True
        try:
            resolved = self.reconciler.resolve_place(target.place)
            if resolved is None:
                logger.debug("Refresh skipped: unresolved place %r", target.place)
                return False
            result = await self.reconciler.collect_snapshot(
                resolved, target.platform, target.window_minutes
            )
        except Exception as exc:
            logger.exception(
                "Departure refresh failed", extra={"place": target.place}
            )
            if generation == self.generation:
                self.last_error = f"{type(exc).__name__}: {exc}"
            return True
        finally:
            self.in_flight = False

        if generation != self.generation:
            logger.debug(
                "Discarding stale refresh result",
                extra={"generation": generation, "current": self.generation},
            )
            return True

        self.latest_result = result
        self.last_error = None
        return True

    async def reload(self, repository: IGtfsRepository) -> bool:
        """Load a fresh static feed and swap it into the reconciler."""

        if self.in_flight:
            return False
        self.in_flight = True
        try:
            snapshot = await asyncio.to_thread(_build_snapshot, repository)
        finally:
            self.in_flight = False

        self.reconciler.snapshot = snapshot
        logger.info(
            "Static timetable reloaded",
            extra={
                "stops": len(snapshot.feed.stops_by_id),
                "places": len(snapshot.places),
            },
        )
        return True

    def start_auto_refresh(
        self, interval_ms: int, *, immediate: bool = False
    ) -> asyncio.Task[None]:
        """Refresh every `interval_ms`, first after one interval unless `immediate`."""

        if self._auto_task is not None and not self._auto_task.done():
            return self._auto_task
        self._auto_task = asyncio.create_task(
            self._auto_refresh_loop(max(0.001, interval_ms / 1000.0), immediate)
        )
        return self._auto_task

    async def stop_auto_refresh(self) -> None:
        task, self._auto_task = self._auto_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        # A tick already running is not cancelled; let it finish.
        if self._ticks:
            await asyncio.gather(*self._ticks)

    async def _auto_refresh_loop(self, interval_s: float, immediate: bool) -> None:
        if not immediate:
            await asyncio.sleep(interval_s)
        while True:
            # Each tick is independent; the in-flight guard drops overlapping ones.
            tick = asyncio.create_task(self.refresh())
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)
            await asyncio.sleep(interval_s)
