from __future__ import annotations

from functools import lru_cache

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


@lru_cache(maxsize=1)
def get_config() -> BoardRuntimeConfig:
    return BoardRuntimeConfig.from_env()


def get_gtfs_repository() -> LocalGtfsRepository:
    cfg = get_config()
    return LocalGtfsRepository(
        base_path=cfg.gtfs_path, overlay_path=cfg.gtfs_overlay_path
    )


@lru_cache(maxsize=1)
def get_departure_reconciler() -> DepartureReconciler:
    # The static feed is loaded once per process; reloads swap the snapshot.
    cfg = get_config()
    snapshot = TimetableSnapshot.build(get_gtfs_repository().load_feed())
    return DepartureReconciler(
        snapshot=snapshot,
        update_provider=HttpGtfsRealtimeTripUpdateProvider(url=cfg.feed_url),
        timezone=cfg.timezone,
        default_window_minutes=cfg.default_window_minutes,
    )


@lru_cache(maxsize=1)
def get_refresh_controller() -> RefreshController:
    cfg = get_config()
    controller = RefreshController(reconciler=get_departure_reconciler())
    if cfg.stop:
        controller.retarget(cfg.stop, cfg.platform)
    return controller
