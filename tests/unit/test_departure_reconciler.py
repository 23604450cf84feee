from __future__ import annotations

import asyncio
from datetime import datetime

import pytest
from factories import (
    NOW,
    NOW_S,
    PARIS,
    FailingTripUpdateProvider,
    FakeTripUpdateProvider,
    make_feed,
    make_reconciler,
    rt,
)

from stopboard.app.services import DepartureReconciler
from stopboard.domain.exceptions import StaticDataMissing

PLACE = "gare d'amiens"


def _collect(reconciler, place=PLACE, platform=None, window=None, now=NOW):
    return asyncio.run(
        reconciler.collect_departures(place, platform, window, now=now)
    )


def test_pure_scheduled_fallback() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    reconciler = make_reconciler(feed, FakeTripUpdateProvider())

    out = _collect(reconciler)

    assert len(out) == 1
    d = out[0]
    assert d.provenance == "scheduled"
    assert d.departure_epoch_s - NOW_S == 600
    assert d.headsign == "Saint-Maurice"
    assert d.route_short_name == "1"
    assert d.platform == "A"
    # Scheduled color comes from the secondary table by short name.
    assert d.color == "#E30613"


def test_realtime_wins_over_schedule_for_same_trip() -> None:
    feed = make_feed([("T1", "S1", "08:10:00"), ("T2", "S2", "08:20:00")])
    provider = FakeTripUpdateProvider((rt("T1", "S1", 420),))
    reconciler = make_reconciler(feed, provider)

    out = _collect(reconciler)

    assert [d.trip_id for d in out] == ["T1", "T2"]
    assert out[0].provenance == "realtime"
    assert out[0].departure_epoch_s == NOW_S + 420
    assert out[1].provenance == "scheduled"


def test_realtime_headsign_comes_from_static_trip() -> None:
    feed = make_feed()
    provider = FakeTripUpdateProvider(
        (rt("T2", "S2", 60), rt("GHOST", "S1", 120)),
    )
    out = _collect(make_reconciler(feed, provider))

    assert [(d.trip_id, d.headsign) for d in out] == [
        ("T2", "Montières"),
        ("GHOST", ""),
    ]
    # Unknown route and no overlay entry: real-time default color.
    assert out[1].color == "#333"


def test_first_qualifying_realtime_update_per_trip_wins() -> None:
    feed = make_feed()
    provider = FakeTripUpdateProvider(
        (
            rt("T1", "S1", -30),  # already gone
            rt("T1", "S1", 300),
            rt("T1", "S2", 200),
            rt("T1", "S1", 360),
        )
    )
    out = _collect(make_reconciler(feed, provider))

    assert len(out) == 1
    assert out[0].departure_epoch_s == NOW_S + 300
    assert out[0].stop_id == "S1"


def test_result_is_sorted_and_has_one_row_per_trip() -> None:
    feed = make_feed(
        [
            ("T1", "S1", "08:30:00"),
            ("T2", "S2", "08:05:00"),
            ("T4", "S1", "08:45:00"),
            ("T4", "S2", "08:50:00"),
        ]
    )
    provider = FakeTripUpdateProvider(
        (rt("T1", "S1", 900), rt("T4", "S2", 100), rt("T9", "S3", 50))
    )
    out = _collect(make_reconciler(feed, provider))

    times = [d.departure_epoch_s for d in out]
    assert times == sorted(times)
    trip_ids = [d.trip_id for d in out]
    assert len(trip_ids) == len(set(trip_ids))
    assert set(trip_ids) == {"T1", "T2", "T4"}


def test_window_is_inclusive_on_both_ends() -> None:
    feed = make_feed(
        [
            ("T1", "S1", "08:00:00"),
            ("T2", "S1", "08:10:00"),
            ("T4", "S1", "08:10:01"),
        ]
    )
    provider = FakeTripUpdateProvider(
        (rt("RT0", "S2", 0), rt("RT1", "S2", 600), rt("RT2", "S2", 601))
    )
    out = _collect(make_reconciler(feed, provider), window=10)

    assert {d.trip_id for d in out} == {"T1", "T2", "RT0", "RT1"}


def test_realtime_update_without_time_is_discarded() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    provider = FakeTripUpdateProvider((rt("T1", "S1", None),))

    out = _collect(make_reconciler(feed, provider))

    assert [(d.trip_id, d.provenance) for d in out] == [("T1", "scheduled")]


def test_platform_filter_excludes_other_platforms() -> None:
    feed = make_feed([("T4", "S2", "08:15:00")])
    provider = FakeTripUpdateProvider((rt("T1", "S1", 120), rt("T2", "S2", 240)))

    out = _collect(make_reconciler(feed, provider), platform="A")

    assert [(d.trip_id, d.platform) for d in out] == [("T1", "A")]


def test_explicit_realtime_platform_beats_stop_name() -> None:
    feed = make_feed()
    provider = FakeTripUpdateProvider((rt("T1", "S1", 120, platform="B"),))

    assert _collect(make_reconciler(feed, provider), platform="A") == []
    out = _collect(make_reconciler(feed, provider), platform="B")
    assert [d.platform for d in out] == ["B"]


def test_realtime_trip_on_other_platform_is_not_resurrected_by_schedule() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    provider = FakeTripUpdateProvider((rt("T1", "S2", 400),))

    out = _collect(make_reconciler(feed, provider), platform="A")

    assert out == []


def test_inactive_service_is_suppressed() -> None:
    feed = make_feed([("T3", "S1", "08:05:00"), ("T4", "S1", "08:06:00")])
    out = _collect(make_reconciler(feed, FakeTripUpdateProvider()))

    assert [d.trip_id for d in out] == ["T4"]
    # R2 has no overlay entry: scheduled default color.
    assert out[0].color == "#555"


def test_feed_failure_degrades_to_schedule() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    reconciler = make_reconciler(feed, FailingTripUpdateProvider())

    snapshot = asyncio.run(reconciler.collect_snapshot(PLACE, now=NOW))

    assert [d.provenance for d in snapshot.departures] == ["scheduled"]
    assert snapshot.feed_error is not None
    assert "503" in snapshot.feed_error


def test_no_provider_means_schedule_only() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    snapshot = asyncio.run(make_reconciler(feed).collect_snapshot(PLACE, now=NOW))

    assert len(snapshot.departures) == 1
    assert snapshot.feed_error is None


def test_unresolved_place_yields_empty_list() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    reconciler = make_reconciler(feed, FakeTripUpdateProvider())

    assert _collect(reconciler, place="nowhere at all") == []
    snapshot = asyncio.run(reconciler.collect_snapshot("nowhere at all", now=NOW))
    assert snapshot.place is None


@pytest.mark.parametrize("ref", ["gare d'amiens", "S2", "Amiens"])
def test_place_resolves_by_key_stop_id_or_name(ref: str) -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    out = _collect(make_reconciler(feed), place=ref)

    assert [d.trip_id for d in out] == ["T1"]


def test_realtime_only_considers_member_stops() -> None:
    feed = make_feed()
    provider = FakeTripUpdateProvider((rt("T1", "S3", 60),))

    assert _collect(make_reconciler(feed, provider)) == []
    out = _collect(make_reconciler(feed, provider), place="S3")
    assert [(d.trip_id, d.platform) for d in out] == [("T1", "C")]


def test_times_past_24h_belong_to_previous_service_day() -> None:
    # Friday 00:10: Thursday's 24:20 run leaves in ten minutes.
    feed = make_feed([("T1", "S1", "24:20:00")])
    now = datetime(2026, 1, 9, 0, 10, 0, tzinfo=PARIS)

    out = _collect(make_reconciler(feed), now=now)

    assert len(out) == 1
    assert out[0].departure_epoch_s - int(now.timestamp()) == 600


def test_window_crossing_midnight_includes_next_service_day() -> None:
    # Thursday 23:50: Friday's 00:05 run is fifteen minutes away.
    feed = make_feed([("T1", "S1", "00:05:00"), ("T2", "S1", "24:01:00")])
    now = datetime(2026, 1, 8, 23, 50, 0, tzinfo=PARIS)

    out = _collect(make_reconciler(feed), window=30, now=now)

    assert [(d.trip_id, d.departure_epoch_s - int(now.timestamp())) for d in out] == [
        ("T2", 660),
        ("T1", 900),
    ]


def test_next_day_service_is_checked_against_its_own_calendar() -> None:
    # Friday 23:50: Saturday has no WEEK service.
    feed = make_feed([("T1", "S1", "00:05:00")])
    now = datetime(2026, 1, 9, 23, 50, 0, tzinfo=PARIS)

    assert _collect(make_reconciler(feed), window=30, now=now) == []


def test_naive_now_is_interpreted_in_agency_timezone() -> None:
    feed = make_feed([("T1", "S1", "08:10:00")])
    out = _collect(make_reconciler(feed), now=datetime(2026, 1, 8, 8, 0, 0))

    assert out[0].departure_epoch_s - NOW_S == 600


def test_missing_snapshot_is_reported() -> None:
    reconciler = DepartureReconciler()

    with pytest.raises(StaticDataMissing):
        _collect(reconciler)
