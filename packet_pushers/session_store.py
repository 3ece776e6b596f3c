from __future__ import annotations

import logging
import random
from datetime import UTC, datetime
from uuid import UUID, uuid4

import redis

from packet_pushers.api.models import PlayerState, Session
from packet_pushers.catalog import (
    BASE_INVENTORY,
    STARTING_CASH,
    STARTING_DEBT,
    STARTING_HEALTH,
    STARTING_LOCATION,
)
from packet_pushers.errors import NotFound, SessionBusy, StorageFailure
from packet_pushers.infra.redis_client import storage_errors
from packet_pushers.market import generate_prices

logger = logging.getLogger(__name__)


SESSION_KEY_PREFIX = "pushers:session:"  # + {uuid}


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _session_key(session_id: UUID) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def new_session(*, rng: random.Random, now: datetime | None = None) -> Session:
    """Build a fresh day-1 session. Pure apart from the random price draw."""

    ts = now or _now()
    return Session(
        session_id=uuid4(),
        created_at=ts,
        last_activity=ts,
        player=PlayerState(
            cash=STARTING_CASH,
            debt=STARTING_DEBT,
            location=STARTING_LOCATION,
            inventory={},
            max_inventory=BASE_INVENTORY,
            health=STARTING_HEALTH,
        ),
        day=1,
        current_prices=generate_prices(1, STARTING_LOCATION, rng=rng),
    )


def create_session(*, r: redis.Redis, rng: random.Random) -> Session:
    session = new_session(rng=rng)
    key = _session_key(session.session_id)
    with storage_errors("create_session"):
        # nx: a uuid4 collision must not overwrite an existing run.
        if not r.set(key, session.model_dump_json(), nx=True):
            raise StorageFailure("Session id collision")
    logger.info("created session=%s", session.session_id)
    return session


def get_session(*, r: redis.Redis, session_id: UUID) -> Session | None:
    with storage_errors("get_session"):
        raw = r.get(_session_key(session_id))
    if not raw:
        return None
    return Session.model_validate_json(raw)


def require_session(*, r: redis.Redis, session_id: UUID) -> Session:
    session = get_session(r=r, session_id=session_id)
    if session is None:
        raise NotFound("Session not found")
    return session


def save_session(*, r: redis.Redis, session: Session, expected_version: int) -> Session:
    """Write `session` back only if the stored copy is still at `expected_version`.

    Returns the stored snapshot (version bumped, last_activity refreshed).
    """

    key = _session_key(session.session_id)
    stored = session.model_copy(update={"version": expected_version + 1, "last_activity": _now()})

    with storage_errors("save_session"):
        try:
            with r.pipeline() as pipe:
                pipe.watch(key)
                raw = pipe.get(key)
                if not raw:
                    raise NotFound("Session not found")
                current = Session.model_validate_json(raw)
                if current.version != expected_version:
                    raise SessionBusy("Session was modified concurrently")
                pipe.multi()
                pipe.set(key, stored.model_dump_json())
                pipe.execute()
        except redis.WatchError as e:
            raise SessionBusy("Session was modified concurrently") from e

    return stored
