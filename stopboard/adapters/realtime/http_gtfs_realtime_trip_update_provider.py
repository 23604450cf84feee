from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field

import httpx
from google.protobuf import json_format
from google.protobuf.message import DecodeError
from google.transit import gtfs_realtime_pb2

from stopboard.app.ports.output import ITripUpdateProvider
from stopboard.domain.exceptions import FeedUnavailable
from stopboard.domain.models.realtime import RealtimeStopUpdate


@dataclass(slots=True)
class HttpGtfsRealtimeTripUpdateProvider(ITripUpdateProvider):
    """Fetches a GTFS-Realtime TripUpdates feed over HTTP.

    Env vars:
      - GTFS_RT_TRIP_UPDATES_URL: URL to a GTFS-RT TripUpdates feed
      - GTFS_RT_HEADERS: optional headers, as 'Key:Value;Key2:Value2'
      - GTFS_RT_TIMEOUT_S: request timeout (default 10)
      - GTFS_RT_CACHE_TTL_S: in-process cache TTL seconds (default 15)

    Notes:
      - If URL is not configured, returns an empty tuple.
      - Protobuf and JSON-encoded feeds are both accepted.
      - Cache is per-process and shared across requests; failures are not cached.
    """

    url: str | None = None
    headers_raw: str | None = None
    timeout_s: float = 10.0
    cache_ttl_s: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None

    # In-process cache
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _cached_at_monotonic: float = 0.0
    _cached_updates: tuple[RealtimeStopUpdate, ...] | None = None

    def __post_init__(self) -> None:
        if self.url is None:
            self.url = os.getenv("GTFS_RT_TRIP_UPDATES_URL")
        if self.headers_raw is None:
            self.headers_raw = os.getenv("GTFS_RT_HEADERS")
        if os.getenv("GTFS_RT_TIMEOUT_S"):
            self.timeout_s = float(os.environ["GTFS_RT_TIMEOUT_S"])
        if os.getenv("GTFS_RT_CACHE_TTL_S"):
            self.cache_ttl_s = float(os.environ["GTFS_RT_CACHE_TTL_S"])

    def _headers(self) -> dict[str, str]:
        raw = (self.headers_raw or "").strip()
        if not raw:
            return {}
        headers: dict[str, str] = {}
        for part in raw.split(";"):
            part = part.strip()
            if not part or ":" not in part:
                continue
            k, v = part.split(":", 1)
            k = k.strip()
            if k:
                headers[k] = v.strip()
        return headers

    async def list_stop_updates(self) -> tuple[RealtimeStopUpdate, ...]:
        if not self.url:
            return ()

        async with self._lock:
            now_mono = time.monotonic()
            if (
                self._cached_updates is not None
                and (now_mono - self._cached_at_monotonic) < self.cache_ttl_s
            ):
                return self._cached_updates

            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_s, transport=self.transport
                ) as client:
                    resp = await client.get(self.url, headers=self._headers())
                    resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise FeedUnavailable(f"Real-time feed request failed: {exc}") from exc

            content_type = resp.headers.get("content-type", "")
            updates = parse_trip_updates(
                resp.content, is_json="json" in content_type.lower()
            )

            self._cached_at_monotonic = time.monotonic()
            self._cached_updates = updates
            return updates


def decode_feed_message(
    content: bytes, *, is_json: bool = False
) -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    if is_json or content.lstrip()[:1] == b"{":
        try:
            text = content.decode("utf-8")
            # Accepts both snake_case and camelCase field names.
            json_format.Parse(text, feed, ignore_unknown_fields=True)
        except (UnicodeDecodeError, json_format.ParseError) as exc:
            raise FeedUnavailable(f"Malformed JSON real-time feed: {exc}") from exc
        return feed

    try:
        feed.ParseFromString(content)
    except DecodeError as exc:
        raise FeedUnavailable(f"Malformed real-time feed: {exc}") from exc
    return feed


def parse_trip_updates(
    content: bytes, *, is_json: bool = False
) -> tuple[RealtimeStopUpdate, ...]:
    return stop_updates_from_feed(decode_feed_message(content, is_json=is_json))


def stop_updates_from_feed(
    feed: gtfs_realtime_pb2.FeedMessage,
) -> tuple[RealtimeStopUpdate, ...]:
    """Flatten TripUpdate entities into one update per (trip, stop) prediction.

    Feed order is preserved. The departure time is preferred; the arrival
    time stands in when a stop carries no departure event.
    """

    out: list[RealtimeStopUpdate] = []

    for ent in feed.entity:
        if not ent.HasField("trip_update"):
            continue

        tu = ent.trip_update
        trip_id = tu.trip.trip_id or None
        if not trip_id:
            continue
        route_id = tu.trip.route_id or None

        for stu in tu.stop_time_update:
            stop_id = stu.stop_id or None
            if not stop_id:
                continue

            predicted = None
            if stu.HasField("departure") and int(stu.departure.time) > 0:
                predicted = int(stu.departure.time)
            elif stu.HasField("arrival") and int(stu.arrival.time) > 0:
                predicted = int(stu.arrival.time)

            out.append(
                RealtimeStopUpdate(
                    trip_id=trip_id,
                    stop_id=stop_id,
                    predicted_epoch_s=predicted,
                    route_id=route_id,
                )
            )

    return tuple(out)
