from .http_gtfs_realtime_trip_update_provider import HttpGtfsRealtimeTripUpdateProvider

__all__ = [
    "HttpGtfsRealtimeTripUpdateProvider",
]
