from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from stopboard.adapters.config import BoardRuntimeConfig
from stopboard.adapters.persistence.local_gtfs_repository import LocalGtfsRepository
from stopboard.adapters.realtime.http_gtfs_realtime_trip_update_provider import (
    HttpGtfsRealtimeTripUpdateProvider,
)
from stopboard.app.services import (
    DepartureReconciler,
    RefreshController,
    TimetableSnapshot,
)
from stopboard.domain.models import Departure
from stopboard.domain.models.departure import filter_by_line, minutes_until

logger = logging.getLogger(__name__)


def format_departure(departure: Departure, *, now_s: int, tz: ZoneInfo) -> str:
    minutes = minutes_until(departure, now_s)
    when = "À l'instant" if minutes == 0 else f"{minutes} min"
    clock = datetime.fromtimestamp(departure.departure_epoch_s, tz=tz).strftime("%H:%M")
    platform = f"  quai {departure.platform}" if departure.platform else ""
    source = "RT" if departure.provenance == "realtime" else "GTFS"
    return (
        f"{departure.line_label:>4}  {departure.headsign or '—':<28} "
        f"{clock}  {when:>11}{platform}  [{source}]"
    )


def render_board(
    controller: RefreshController, cfg: BoardRuntimeConfig, *, limit: int = 8
) -> list[str]:
    result = controller.latest_result
    if result is None or result.place is None:
        lines = [f"{cfg.stop or '—'}: no departures loaded"]
    else:
        tz = ZoneInfo(cfg.timezone)
        now_s = int(datetime.now(tz).timestamp())
        departures = filter_by_line(result.departures, cfg.line)
        lines = [f"{result.place.base_name} ({len(departures)} departures)"]
        if cfg.line and not departures:
            lines.append(f"No departures for line {cfg.line!r} in the current window.")
        lines.extend(
            format_departure(d, now_s=now_s, tz=tz) for d in departures[:limit]
        )
        if result.feed_error:
            lines.append(f"real-time unavailable: {result.feed_error}")
    if controller.last_error:
        lines.append(f"error: {controller.last_error}")
    return lines


def build_controller(cfg: BoardRuntimeConfig) -> RefreshController:
    repo = LocalGtfsRepository(base_path=cfg.gtfs_path, overlay_path=cfg.gtfs_overlay_path)
    reconciler = DepartureReconciler(
        snapshot=TimetableSnapshot.build(repo.load_feed()),
        update_provider=HttpGtfsRealtimeTripUpdateProvider(url=cfg.feed_url),
        timezone=cfg.timezone,
        default_window_minutes=cfg.default_window_minutes,
    )
    controller = RefreshController(reconciler=reconciler)
    if cfg.stop:
        controller.retarget(cfg.stop, cfg.platform)
    return controller


async def run(
    controller: RefreshController,
    cfg: BoardRuntimeConfig,
    *,
    loop: bool = True,
    out: Callable[[str], None] = print,
) -> None:
    await controller.refresh()
    for line in render_board(controller, cfg):
        out(line)
    if not loop:
        return

    interval_s = cfg.refresh_interval_ms / 1000.0
    controller.start_auto_refresh(cfg.refresh_interval_ms)
    try:
        while True:
            await asyncio.sleep(interval_s)
            out("")
            for line in render_board(controller, cfg):
                out(line)
    finally:
        await controller.stop_auto_refresh()


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
    cfg = BoardRuntimeConfig.from_env()
    if not cfg.stop:
        raise SystemExit("STOPBOARD_STOP is not set (place key, stop id or name)")

    loop = os.getenv("STOPBOARD_LOOP", "1").strip().lower() not in {"0", "false", "no"}
    controller = build_controller(cfg)
    try:
        asyncio.run(run(controller, cfg, loop=loop))
    except KeyboardInterrupt:
        logger.info("Board stopped")


if __name__ == "__main__":
    main()
