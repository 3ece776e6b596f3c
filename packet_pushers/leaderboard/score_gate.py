"""Anti-cheat gate for leaderboard submissions.

Everything here is a pure decision over the submitted payload; reading the player's
last accepted submission and persisting the entry belong to the store.

The integrity hash detects payload tampering in transit. It is not a signature: the
algorithm and covered fields are public, so a motivated client can forge it.
"""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from packet_pushers.api.models import GameData, LeaderboardEntry, ScoreSubmission
from packet_pushers.catalog import MAX_DAYS
from packet_pushers.settings import Settings


MARKET_ACTIVITY_TYPES = frozenset({"buy", "sell", "travel"})
DEFAULT_GAME_VERSION = "2.5.1"


@dataclass(frozen=True, slots=True)
class Admission:
    accepted: bool
    # Internal explanation; log it, don't echo it to clients.
    reason: str | None = None
    # Set only for rate-limit rejections: seconds until the player may submit again.
    retry_after: int | None = None
    verification_hash: str | None = None


def _js_float(value: float) -> str:
    """Format a float the way JavaScript's Number#toString does (1.0 -> 1, 1e-07 -> 1e-7)."""

    if not math.isfinite(value):
        # JSON.stringify emits null for NaN and the infinities.
        return "null"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits, which JavaScript also uses.
    _, digits_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(map(str, digits_tuple))
    k = len(digits)
    n = k + exponent

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _js_json(value: Any) -> str:
    """Compact JSON matching JSON.stringify output for the value shapes clients send."""

    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        # JavaScript numbers are doubles; past 1e21 they print in exponent form.
        return str(value) if abs(value) < 10**21 else _js_float(float(value))
    if isinstance(value, float):
        return _js_float(value)
    if isinstance(value, dict):
        return "{" + ",".join(f"{_js_json(str(k))}:{_js_json(v)}" for k, v in value.items()) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_js_json(v) for v in value) + "]"
    return json.dumps(value, ensure_ascii=False)


def canonical_payload(game_data: GameData) -> str:
    critical = {
        "score": game_data.score,
        "day": game_data.day,
        "startTime": game_data.start_time,
        "endTime": game_data.end_time,
        "playerStats": game_data.player_stats,
    }
    return _js_json(critical)


def compute_integrity_hash(game_data: GameData, *, length: int = 16) -> str:
    digest = hashlib.sha256(canonical_payload(game_data).encode("utf-8")).hexdigest()
    return digest[:length]


def game_minutes(game_data: GameData) -> float:
    return (game_data.end_time - game_data.start_time) / (1000 * 60)


def _has_market_activity(events: list[dict[str, Any]]) -> bool:
    return any(e.get("type") in MARKET_ACTIVITY_TYPES for e in events)


def admit(
    submission: ScoreSubmission,
    *,
    last_accepted_at: datetime | None,
    now: datetime,
    settings: Settings,
) -> Admission:
    data = submission.game_data

    if game_minutes(data) < settings.min_game_minutes:
        return Admission(accepted=False, reason="Game completed too quickly")

    if data.score > settings.max_score or data.score < settings.min_score:
        return Admission(accepted=False, reason="Score outside reasonable bounds")

    if data.day < 1 or data.day > MAX_DAYS:
        return Admission(accepted=False, reason="Invalid day progression")

    if abs(data.net_worth() - data.score) > settings.score_tolerance:
        return Admission(accepted=False, reason="Score doesn't match net worth")

    if data.game_events and not _has_market_activity(data.game_events):
        return Admission(accepted=False, reason="No market activity detected")

    expected = compute_integrity_hash(data, length=settings.hash_length)
    if submission.integrity_hash != expected:
        return Admission(accepted=False, reason="Data integrity check failed")

    if last_accepted_at is not None:
        elapsed = (now - last_accepted_at).total_seconds()
        if elapsed < settings.submit_cooldown_seconds:
            return Admission(
                accepted=False,
                reason="Submitted again within the cooldown window",
                retry_after=max(1, math.ceil(settings.submit_cooldown_seconds - elapsed)),
            )

    return Admission(accepted=True, verification_hash=expected)


def build_entry(
    submission: ScoreSubmission,
    *,
    verification_hash: str,
    user_agent: str | None,
    now: datetime,
) -> LeaderboardEntry:
    data = submission.game_data
    return LeaderboardEntry(
        entry_id=uuid4(),
        player_name=submission.player_name,
        score=data.score,
        day=data.day,
        net_worth=data.net_worth(),
        # Half-up, not banker's rounding.
        game_duration_minutes=math.floor(game_minutes(data) + 0.5),
        verification_hash=verification_hash,
        game_version=data.version or DEFAULT_GAME_VERSION,
        user_agent=(user_agent or "Unknown")[:200],
        created_at=now,
    )
