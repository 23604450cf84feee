from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from stopboard.adapters.api.dependencies import get_departure_reconciler
from stopboard.adapters.api.schemas.departures import PlaceSchema
from stopboard.app.services import DepartureReconciler
from stopboard.domain.algorithms.stop_names import search_places
from stopboard.domain.exceptions import StaticDataMissing
from stopboard.domain.models import Place

router = APIRouter(prefix="/places", tags=["places"])


def place_to_schema(place: Place) -> PlaceSchema:
    return PlaceSchema(
        key=place.key,
        name=place.base_name,
        stop_ids=list(place.member_stop_ids),
        platforms=list(place.platforms),
    )


@router.get("", response_model=list[PlaceSchema])
def list_places(
    q: str = Query(min_length=2),
    limit: int = Query(default=30, ge=1, le=200),
    service: DepartureReconciler = Depends(get_departure_reconciler),
) -> list[PlaceSchema]:
    if service.snapshot is None:
        raise StaticDataMissing("Static timetable not loaded")
    return [
        place_to_schema(p)
        for p in search_places(service.snapshot.places, q, limit=limit)
    ]


@router.get("/{ref}", response_model=PlaceSchema)
def get_place(
    ref: str,
    service: DepartureReconciler = Depends(get_departure_reconciler),
) -> PlaceSchema:
    place = service.resolve_place(ref)
    if place is None:
        raise HTTPException(status_code=404, detail="Place not found")
    return place_to_schema(place)
