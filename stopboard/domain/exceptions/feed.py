class StopboardError(Exception):
    """Base exception for departure board failures."""


class FeedUnavailable(StopboardError):
    """Raised when the real-time feed cannot be fetched or decoded."""


class StaticDataMissing(StopboardError):
    """Raised when static timetable data is required but not loaded."""
