from __future__ import annotations

import logging
import random
from datetime import UTC, datetime
from uuid import UUID

import redis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from packet_pushers.actions import dispatch_action
from packet_pushers.api.deps import get_redis, get_rng, get_settings
from packet_pushers.api.models import (
    ActionResponse,
    GameAction,
    LeaderboardEntry,
    LeaderboardResponse,
    ScoreSubmission,
    Session,
    SubmitScoreResponse,
    Timeframe,
)
from packet_pushers.errors import IntegrityRejected, NotFound, RateLimited, SessionBusy, StorageFailure
from packet_pushers.leaderboard.score_gate import admit, build_entry
from packet_pushers.leaderboard.store import (
    MAX_QUERY_LIMIT,
    get_entry,
    insert_entry,
    last_accepted_at,
    query_leaderboard,
    rank_for_score,
)
from packet_pushers.session_store import create_session, get_session
from packet_pushers.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _storage_failed(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/game", response_model=Session, status_code=status.HTTP_201_CREATED)
def create_session_route(
    r: redis.Redis = Depends(get_redis),
    rng: random.Random = Depends(get_rng),
) -> Session:
    try:
        return create_session(r=r, rng=rng)
    except StorageFailure as e:
        raise _storage_failed("Failed to create game session") from e


@router.get("/game/{session_id}", response_model=Session)
def get_session_route(session_id: UUID, r: redis.Redis = Depends(get_redis)) -> Session:
    try:
        session = get_session(r=r, session_id=session_id)
    except StorageFailure as e:
        raise _storage_failed("Failed to load game session") from e
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return session


@router.post("/game/{session_id}/actions", response_model=ActionResponse)
def session_action_route(
    session_id: UUID,
    action: GameAction,
    r: redis.Redis = Depends(get_redis),
    rng: random.Random = Depends(get_rng),
    settings: Settings = Depends(get_settings),
) -> ActionResponse:
    try:
        outcome = dispatch_action(
            r=r,
            session_id=session_id,
            action=action,
            rng=rng,
            lock_ttl_ms=settings.session_lock_ttl_ms,
        )
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except SessionBusy as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except StorageFailure as e:
        raise _storage_failed("Failed to update session") from e

    if not outcome.admissible:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=outcome.reason)

    return ActionResponse(
        admissible=True,
        session=outcome.session,
        messages=outcome.messages,
        events=outcome.events,
    )


@router.post("/leaderboard", response_model=SubmitScoreResponse)
def submit_score_route(
    submission: ScoreSubmission,
    user_agent: str | None = Header(default=None),
    r: redis.Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> SubmitScoreResponse:
    now = _now()
    try:
        previous = last_accepted_at(r=r, player_name=submission.player_name)
        admission = admit(submission, last_accepted_at=previous, now=now, settings=settings)

        if admission.retry_after is not None:
            cooldown = settings.submit_cooldown_seconds // 60
            raise RateLimited(f"Please wait {cooldown} minutes between submissions", retry_after=admission.retry_after)
        if not admission.accepted or admission.verification_hash is None:
            raise IntegrityRejected(admission.reason or "rejected")

        entry = build_entry(
            submission,
            verification_hash=admission.verification_hash,
            user_agent=user_agent,
            now=now,
        )
        insert_entry(r=r, entry=entry, cooldown_seconds=settings.submit_cooldown_seconds)
        ranking = rank_for_score(r=r, score=entry.score)
    except IntegrityRejected as e:
        logger.warning("score rejected player=%s reason=%s", submission.player_name, e.reason)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except RateLimited as e:
        logger.info("score rate-limited player=%s retry_after=%s", submission.player_name, e.retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after)},
        ) from e
    except StorageFailure as e:
        raise _storage_failed("Failed to save score") from e

    return SubmitScoreResponse(
        ranking=ranking,
        score=entry.score,
        player=entry.player_name,
        timestamp=now,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard_route(
    limit: int = Query(100, ge=1, le=MAX_QUERY_LIMIT),
    timeframe: Timeframe = Timeframe.all,
    r: redis.Redis = Depends(get_redis),
) -> LeaderboardResponse:
    now = _now()
    try:
        entries = query_leaderboard(r=r, limit=limit, timeframe=timeframe, now=now)
    except StorageFailure as e:
        raise _storage_failed("Failed to fetch leaderboard") from e
    return LeaderboardResponse(leaderboard=entries, timestamp=now)


@router.get("/leaderboard/{entry_id}", response_model=LeaderboardEntry)
def leaderboard_entry_route(entry_id: UUID, r: redis.Redis = Depends(get_redis)) -> LeaderboardEntry:
    try:
        entry = get_entry(r=r, entry_id=entry_id)
    except StorageFailure as e:
        raise _storage_failed("Failed to fetch leaderboard entry") from e
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found")
    return entry
