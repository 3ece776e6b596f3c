from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

import redis

from packet_pushers.api.models import LeaderboardEntry, Timeframe
from packet_pushers.infra.redis_client import storage_errors

logger = logging.getLogger(__name__)


ENTRY_KEY_PREFIX = "pushers:leaderboard:entry:"  # + {uuid}
BY_SCORE_KEY = "pushers:leaderboard:by_score"
BY_TIME_KEY = "pushers:leaderboard:by_time"
LAST_ACCEPTED_KEY_PREFIX = "pushers:leaderboard:last:"  # + {player_name}

MAX_QUERY_LIMIT = 500
# Ids read from the score index per round trip when a timeframe filters entries out.
QUERY_PAGE_SIZE = 200


def _entry_key(entry_id: UUID | str) -> str:
    return f"{ENTRY_KEY_PREFIX}{entry_id}"


def _last_accepted_key(player_name: str) -> str:
    return f"{LAST_ACCEPTED_KEY_PREFIX}{player_name}"


def insert_entry(*, r: redis.Redis, entry: LeaderboardEntry, cooldown_seconds: int) -> LeaderboardEntry:
    """Store an accepted entry.

    The per-player marker only matters for the submit cooldown, so it expires with it.
    """

    eid = str(entry.entry_id)
    with storage_errors("insert_entry"):
        pipe = r.pipeline(transaction=True)
        pipe.set(_entry_key(eid), entry.model_dump_json())
        pipe.zadd(BY_SCORE_KEY, {eid: entry.score})
        pipe.zadd(BY_TIME_KEY, {eid: entry.created_at.timestamp()})
        if cooldown_seconds > 0:
            pipe.set(_last_accepted_key(entry.player_name), entry.created_at.isoformat(), ex=cooldown_seconds)
        pipe.execute()
    logger.info("leaderboard entry=%s player=%s score=%s", eid, entry.player_name, entry.score)
    return entry


def get_entry(*, r: redis.Redis, entry_id: UUID) -> LeaderboardEntry | None:
    with storage_errors("get_entry"):
        raw = r.get(_entry_key(entry_id))
    if not raw:
        return None
    return LeaderboardEntry.model_validate_json(raw)


def last_accepted_at(*, r: redis.Redis, player_name: str) -> datetime | None:
    with storage_errors("last_accepted_at"):
        raw = r.get(_last_accepted_key(player_name))
    if not raw:
        return None
    return datetime.fromisoformat(raw)


def rank_for_score(*, r: redis.Redis, score: int) -> int:
    """1 + number of stored entries with a strictly greater score."""

    with storage_errors("rank_for_score"):
        higher = r.zcount(BY_SCORE_KEY, f"({score}", "+inf")
    return int(higher) + 1


def timeframe_start(timeframe: Timeframe, *, now: datetime) -> datetime | None:
    if timeframe == Timeframe.daily:
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if timeframe == Timeframe.weekly:
        return now - timedelta(days=7)
    return None


def _recent_ids_by_score(*, r: redis.Redis, since: datetime, limit: int) -> list[str]:
    """Walk the score index best-first, page by page, keeping ids created at or after `since`."""

    cutoff = since.timestamp()
    ids: list[str] = []
    start = 0
    while len(ids) < limit:
        page = r.zrevrange(BY_SCORE_KEY, start, start + QUERY_PAGE_SIZE - 1)
        if not page:
            break
        created = r.zmscore(BY_TIME_KEY, page)
        ids.extend(eid for eid, ts in zip(page, created, strict=True) if ts is not None and ts >= cutoff)
        start += QUERY_PAGE_SIZE
    return ids[:limit]


def query_leaderboard(
    *,
    r: redis.Redis,
    limit: int = 100,
    timeframe: Timeframe = Timeframe.all,
    now: datetime,
) -> list[LeaderboardEntry]:
    """Entries ordered by score descending, optionally restricted to a recent window."""

    if limit < 1 or limit > MAX_QUERY_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_QUERY_LIMIT}")

    since = timeframe_start(timeframe, now=now)

    with storage_errors("query_leaderboard"):
        if since is None:
            ids = r.zrevrange(BY_SCORE_KEY, 0, limit - 1)
        else:
            ids = _recent_ids_by_score(r=r, since=since, limit=limit)

        if not ids:
            return []
        raws = r.mget([_entry_key(eid) for eid in ids])

    return [LeaderboardEntry.model_validate_json(raw) for raw in raws if raw]
