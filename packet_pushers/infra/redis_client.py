from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis

from packet_pushers.errors import StorageFailure
from packet_pushers.settings import settings_from_env

logger = logging.getLogger(__name__)


def get_redis_url() -> str:
    return settings_from_env().redis_url


def create_redis() -> redis.Redis:
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(get_redis_url(), decode_responses=True)


@contextmanager
def storage_errors(op: str) -> Iterator[None]:
    """Translate redis client errors into StorageFailure without leaking details to callers."""

    try:
        yield
    except redis.RedisError as e:
        logger.exception("storage failure during %s", op)
        raise StorageFailure(f"Storage failure during {op}") from e
