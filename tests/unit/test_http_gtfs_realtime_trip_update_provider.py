from __future__ import annotations

import httpx
import pytest
from factories import NOW, make_feed, make_reconciler
from google.protobuf import json_format
from google.transit import gtfs_realtime_pb2

from stopboard.adapters.realtime.http_gtfs_realtime_trip_update_provider import (
    HttpGtfsRealtimeTripUpdateProvider,
    parse_trip_updates,
)
from stopboard.domain.exceptions import FeedUnavailable
from stopboard.domain.models import RealtimeStopUpdate

FEED_URL = "https://feeds.example.test/trip-updates"


def _feed_message() -> gtfs_realtime_pb2.FeedMessage:
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"

    ent = feed.entity.add()
    ent.id = "1"
    ent.trip_update.trip.trip_id = "T1"
    ent.trip_update.trip.route_id = "R1"
    stu = ent.trip_update.stop_time_update.add()
    stu.stop_id = "S1"
    stu.arrival.time = 1_000
    stu.departure.time = 1_060
    stu = ent.trip_update.stop_time_update.add()
    stu.stop_id = "S2"
    stu.arrival.time = 1_200
    stu = ent.trip_update.stop_time_update.add()
    stu.stop_id = "S3"

    # Vehicle positions are ignored.
    ent = feed.entity.add()
    ent.id = "2"
    ent.vehicle.trip.trip_id = "T9"

    # Trip updates without a trip id cannot be matched.
    ent = feed.entity.add()
    ent.id = "3"
    ent.trip_update.trip.route_id = "R2"
    ent.trip_update.stop_time_update.add().stop_id = "S1"

    return feed


EXPECTED = (
    RealtimeStopUpdate(trip_id="T1", stop_id="S1", predicted_epoch_s=1_060, route_id="R1"),
    RealtimeStopUpdate(trip_id="T1", stop_id="S2", predicted_epoch_s=1_200, route_id="R1"),
    RealtimeStopUpdate(trip_id="T1", stop_id="S3", predicted_epoch_s=None, route_id="R1"),
)


def test_parse_protobuf_trip_updates() -> None:
    content = _feed_message().SerializeToString()

    assert parse_trip_updates(content) == EXPECTED


def test_parse_json_feed_in_either_field_spelling() -> None:
    camel = json_format.MessageToJson(_feed_message()).encode()
    snake = json_format.MessageToJson(
        _feed_message(), preserving_proto_field_name=True
    ).encode()

    assert parse_trip_updates(camel, is_json=True) == EXPECTED
    assert parse_trip_updates(snake) == EXPECTED


@pytest.mark.parametrize(
    "content",
    [b"\xff\xff\xff\xff", b"{not json", b'{"entity": 3}', b'{"entity": "\xff\xfe"}'],
)
def test_malformed_payload_raises_feed_unavailable(content: bytes) -> None:
    with pytest.raises(FeedUnavailable):
        parse_trip_updates(content)


@pytest.mark.unit
@pytest.mark.anyio
async def test_provider_fetches_and_caches() -> None:
    requests: list[httpx.Request] = []
    body = _feed_message().SerializeToString()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200, content=body, headers={"content-type": "application/x-protobuf"}
        )

    provider = HttpGtfsRealtimeTripUpdateProvider(
        url=FEED_URL,
        headers_raw="X-Api-Key: secret; broken ;Accept:application/x-protobuf",
        cache_ttl_s=60.0,
        transport=httpx.MockTransport(handler),
    )

    first = await provider.list_stop_updates()
    second = await provider.list_stop_updates()

    assert first == EXPECTED
    assert second == EXPECTED
    assert len(requests) == 1
    assert requests[0].headers["X-Api-Key"] == "secret"
    assert requests[0].headers["Accept"] == "application/x-protobuf"


@pytest.mark.unit
@pytest.mark.anyio
async def test_provider_http_error_raises_feed_unavailable() -> None:
    provider = HttpGtfsRealtimeTripUpdateProvider(
        url=FEED_URL,
        cache_ttl_s=0.0,
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )

    with pytest.raises(FeedUnavailable):
        await provider.list_stop_updates()


@pytest.mark.unit
@pytest.mark.anyio
async def test_provider_without_url_returns_nothing(monkeypatch) -> None:
    monkeypatch.delenv("GTFS_RT_TRIP_UPDATES_URL", raising=False)
    provider = HttpGtfsRealtimeTripUpdateProvider()

    assert await provider.list_stop_updates() == ()


@pytest.mark.unit
@pytest.mark.anyio
async def test_undecodable_json_feed_degrades_to_schedule() -> None:
    provider = HttpGtfsRealtimeTripUpdateProvider(
        url=FEED_URL,
        cache_ttl_s=0.0,
        transport=httpx.MockTransport(
            lambda request: httpx.Response(
                200,
                content=b'{"entity": "\xff\xfe"}',
                headers={"content-type": "application/json"},
            )
        ),
    )
    reconciler = make_reconciler(make_feed([("T1", "S1", "08:10:00")]), provider)

    snapshot = await reconciler.collect_snapshot("gare d'amiens", now=NOW)

    assert snapshot.feed_error is not None
    assert [(d.trip_id, d.provenance) for d in snapshot.departures] == [
        ("T1", "scheduled")
    ]
