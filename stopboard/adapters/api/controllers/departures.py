from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from stopboard.adapters.api.controllers.places import place_to_schema
from stopboard.adapters.api.dependencies import get_departure_reconciler
from stopboard.adapters.api.schemas.departures import (
    DepartureSchema,
    DeparturesResponseSchema,
)
from stopboard.app.services import DepartureReconciler
from stopboard.domain.models import DepartureSnapshot
from stopboard.domain.models.departure import filter_by_line, minutes_until

router = APIRouter(tags=["departures"])


def snapshot_to_schema(
    snapshot: DepartureSnapshot, *, line: str | None = None
) -> DeparturesResponseSchema:
    tz = snapshot.generated_at.tzinfo
    now_s = int(snapshot.generated_at.timestamp())
    return DeparturesResponseSchema(
        fetched_at=snapshot.generated_at,
        place=place_to_schema(snapshot.place) if snapshot.place else None,
        platform=snapshot.platform_filter,
        window_minutes=snapshot.window_minutes,
        feed_error=snapshot.feed_error,
        departures=[
            DepartureSchema(
                trip_id=d.trip_id,
                route_id=d.route_id,
                route_short_name=d.route_short_name,
                headsign=d.headsign,
                stop_id=d.stop_id,
                platform=d.platform,
                departure_time=datetime.fromtimestamp(d.departure_epoch_s, tz=tz),
                departure_epoch_s=d.departure_epoch_s,
                minutes=minutes_until(d, now_s),
                color=d.color,
                provenance=d.provenance,
            )
            for d in filter_by_line(snapshot.departures, line)
        ],
    )


@router.get("/departures", response_model=DeparturesResponseSchema)
async def list_departures(
    stop: str = Query(min_length=1),
    platform: str | None = Query(default=None),
    window: int | None = Query(default=None, ge=1, le=24 * 60),
    line: str | None = Query(default=None),
    service: DepartureReconciler = Depends(get_departure_reconciler),
) -> DeparturesResponseSchema:
    snapshot = await service.collect_snapshot(stop, platform, window)
    return snapshot_to_schema(snapshot, line=line)
