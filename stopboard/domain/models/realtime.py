from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RealtimeStopUpdate:
    """One predicted call of a trip at a stop, flattened out of a TripUpdate."""

    trip_id: str
    stop_id: str
    predicted_epoch_s: int | None
    route_id: str | None = None
    route_short_name: str | None = None
    platform: str | None = None
