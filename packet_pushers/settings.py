from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


@dataclass(frozen=True, slots=True)
class Settings:
    redis_url: str
    log_level: str

    # Score gate thresholds; anti-cheat heuristics, tunable per deployment.
    min_game_minutes: float
    score_tolerance: int
    hash_length: int
    submit_cooldown_seconds: int
    min_score: int
    max_score: int

    session_lock_ttl_ms: int


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from e


def load_dotenv_if_present(*, project_root: Path | None = None) -> None:
    """Load `.env` from the project root without overriding real environment variables."""

    root = project_root or Path(__file__).resolve().parents[1]
    env_path = root / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


def settings_from_env() -> Settings:
    return Settings(
        redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
        log_level=os.environ.get("PUSHERS_LOG_LEVEL", "INFO").upper(),
        min_game_minutes=_float_env("PUSHERS_MIN_GAME_MINUTES", 5.0),
        score_tolerance=_int_env("PUSHERS_SCORE_TOLERANCE", 1000),
        hash_length=_int_env("PUSHERS_HASH_LENGTH", 16),
        submit_cooldown_seconds=_int_env("PUSHERS_SUBMIT_COOLDOWN_SECONDS", 5 * 60),
        min_score=_int_env("PUSHERS_MIN_SCORE", -10_000),
        max_score=_int_env("PUSHERS_MAX_SCORE", 1_000_000),
        session_lock_ttl_ms=_int_env("PUSHERS_SESSION_LOCK_TTL_MS", 5_000),
    )
