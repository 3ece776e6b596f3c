from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import fakeredis
import pytest

from packet_pushers.api.models import LeaderboardEntry, Timeframe
from packet_pushers.leaderboard import store
from packet_pushers.leaderboard.store import (
    get_entry,
    insert_entry,
    last_accepted_at,
    query_leaderboard,
    rank_for_score,
    timeframe_start,
)

NOW = datetime(2025, 6, 4, 15, 30, tzinfo=UTC)
COOLDOWN = 300


def _entry(name: str, score: int, *, created_at: datetime = NOW) -> LeaderboardEntry:
    return LeaderboardEntry(
        entry_id=uuid4(),
        player_name=name,
        score=score,
        day=30,
        net_worth=score,
        game_duration_minutes=20,
        verification_hash="abc123",
        game_version="2.5.1",
        user_agent="pytest",
        created_at=created_at,
    )


def test_query_orders_by_score_descending(r: fakeredis.FakeRedis) -> None:
    for name, score in (("a", 100), ("b", 900), ("c", 400)):
        insert_entry(r=r, entry=_entry(name, score), cooldown_seconds=COOLDOWN)

    entries = query_leaderboard(r=r, now=NOW)

    assert [e.player_name for e in entries] == ["b", "c", "a"]
    assert [e.player_name for e in query_leaderboard(r=r, limit=2, now=NOW)] == ["b", "c"]


def test_rank_counts_strictly_higher_scores(r: fakeredis.FakeRedis) -> None:
    for name, score in (("a", 100), ("b", 900), ("c", 900)):
        insert_entry(r=r, entry=_entry(name, score), cooldown_seconds=COOLDOWN)

    assert rank_for_score(r=r, score=900) == 1
    assert rank_for_score(r=r, score=100) == 3
    assert rank_for_score(r=r, score=5000) == 1


def test_entry_round_trip(r: fakeredis.FakeRedis) -> None:
    entry = insert_entry(r=r, entry=_entry("tony", 1234), cooldown_seconds=COOLDOWN)

    stored = get_entry(r=r, entry_id=entry.entry_id)
    assert stored is not None
    assert stored.model_dump() == entry.model_dump()
    assert get_entry(r=r, entry_id=uuid4()) is None


def test_last_accepted_is_tracked_per_player(r: fakeredis.FakeRedis) -> None:
    insert_entry(r=r, entry=_entry("tony", 10, created_at=NOW - timedelta(hours=1)), cooldown_seconds=COOLDOWN)

    assert last_accepted_at(r=r, player_name="tony") == NOW - timedelta(hours=1)
    assert last_accepted_at(r=r, player_name="manny") is None


def test_timeframe_start() -> None:
    assert timeframe_start(Timeframe.all, now=NOW) is None
    assert timeframe_start(Timeframe.daily, now=NOW) == datetime(2025, 6, 4, tzinfo=UTC)
    assert timeframe_start(Timeframe.weekly, now=NOW) == NOW - timedelta(days=7)


def test_timeframe_filters(r: fakeredis.FakeRedis) -> None:
    insert_entry(r=r, entry=_entry("today", 100, created_at=NOW - timedelta(hours=2)), cooldown_seconds=COOLDOWN)
    insert_entry(r=r, entry=_entry("yesterday", 500, created_at=NOW - timedelta(days=1)), cooldown_seconds=COOLDOWN)
    insert_entry(r=r, entry=_entry("last_month", 900, created_at=NOW - timedelta(days=30)), cooldown_seconds=COOLDOWN)

    daily = query_leaderboard(r=r, timeframe=Timeframe.daily, now=NOW)
    weekly = query_leaderboard(r=r, timeframe=Timeframe.weekly, now=NOW)
    everything = query_leaderboard(r=r, timeframe=Timeframe.all, now=NOW)

    assert [e.player_name for e in daily] == ["today"]
    assert [e.player_name for e in weekly] == ["yesterday", "today"]
    assert [e.player_name for e in everything] == ["last_month", "yesterday", "today"]


@pytest.mark.parametrize("limit", [0, 501])
def test_limit_bounds(r: fakeredis.FakeRedis, limit: int) -> None:
    with pytest.raises(ValueError):
        query_leaderboard(r=r, limit=limit, now=NOW)


def test_empty_leaderboard(r: fakeredis.FakeRedis) -> None:
    assert query_leaderboard(r=r, now=NOW) == []


def test_last_accepted_marker_expires_with_cooldown(r: fakeredis.FakeRedis) -> None:
    insert_entry(r=r, entry=_entry("tony", 10), cooldown_seconds=COOLDOWN)

    assert 0 < r.ttl("pushers:leaderboard:last:tony") <= COOLDOWN


def test_no_marker_without_cooldown(r: fakeredis.FakeRedis) -> None:
    insert_entry(r=r, entry=_entry("tony", 10), cooldown_seconds=0)

    assert last_accepted_at(r=r, player_name="tony") is None


def test_timeframe_query_pages_through_score_index(r: fakeredis.FakeRedis, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(store, "QUERY_PAGE_SIZE", 2)
    old = NOW - timedelta(days=30)
    for name, score, created_at in (
        ("old_1", 1000, old),
        ("new_1", 900, NOW),
        ("old_2", 800, old),
        ("old_3", 700, old),
        ("new_2", 600, NOW),
        ("new_3", 500, NOW),
    ):
        insert_entry(r=r, entry=_entry(name, score, created_at=created_at), cooldown_seconds=COOLDOWN)

    top_two = query_leaderboard(r=r, limit=2, timeframe=Timeframe.daily, now=NOW)
    everything = query_leaderboard(r=r, limit=10, timeframe=Timeframe.weekly, now=NOW)

    assert [e.player_name for e in top_two] == ["new_1", "new_2"]
    assert [e.player_name for e in everything] == ["new_1", "new_2", "new_3"]
