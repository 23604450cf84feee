from __future__ import annotations

from dataclasses import dataclass

from stopboard.domain.algorithms.stop_names import build_place_index
from stopboard.domain.models import GtfsFeed, Place


@dataclass(frozen=True, slots=True)
class TimetableSnapshot:
    """Static feed plus its place index, built once per load and never mutated.

    Reloading produces a new snapshot; readers holding the old one keep a
    consistent view.
    """

    feed: GtfsFeed
    places: dict[str, Place]

    @staticmethod
    def build(feed: GtfsFeed) -> "TimetableSnapshot":
        return TimetableSnapshot(
            feed=feed, places=build_place_index(feed.stops_by_id.values())
        )
