from .feed import FeedUnavailable, StaticDataMissing, StopboardError

__all__ = ["FeedUnavailable", "StaticDataMissing", "StopboardError"]
