from .gtfs_repository import IGtfsRepository
from .trip_update_provider import ITripUpdateProvider

__all__ = [
    "IGtfsRepository",
    "ITripUpdateProvider",
]
