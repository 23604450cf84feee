from __future__ import annotations

from abc import ABC, abstractmethod

from stopboard.domain.models.realtime import RealtimeStopUpdate


class ITripUpdateProvider(ABC):
    """Port for obtaining real-time stop predictions (e.g., via GTFS-Realtime TripUpdates).

    Implementations raise FeedUnavailable when the feed cannot be read.
    """

    @abstractmethod
    async def list_stop_updates(self) -> tuple[RealtimeStopUpdate, ...]:
        raise NotImplementedError
