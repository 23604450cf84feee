from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PlaceSchema(BaseModel):
    key: str
    name: str
    stop_ids: list[str]
    platforms: list[str]


class DepartureSchema(BaseModel):
    trip_id: str
    route_id: str | None = None
    route_short_name: str | None = None
    headsign: str
    stop_id: str
    platform: str | None = None
    departure_time: datetime
    departure_epoch_s: int
    minutes: int
    color: str
    provenance: Literal["realtime", "scheduled"]


class DeparturesResponseSchema(BaseModel):
    fetched_at: datetime
    place: PlaceSchema | None = None
    platform: str | None = None
    window_minutes: int
    feed_error: str | None = None
    departures: list[DepartureSchema]


class BoardTargetSchema(BaseModel):
    stop: str = Field(min_length=1)
    platform: str | None = None
    window_minutes: int | None = Field(default=None, ge=1, le=24 * 60)


class BoardStateSchema(BaseModel):
    status: Literal["idle", "ok", "degraded", "error"]
    last_error: str | None = None
    generation: int
    in_flight: bool
    target: BoardTargetSchema | None = None
    result: DeparturesResponseSchema | None = None
