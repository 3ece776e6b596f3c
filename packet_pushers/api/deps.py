from __future__ import annotations

import random
from collections.abc import Generator
from functools import lru_cache

import redis

from packet_pushers.infra.redis_client import create_redis
from packet_pushers.settings import Settings, settings_from_env


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        client.close()


def get_rng() -> random.Random:
    # Fresh, OS-seeded source per request; tests override this with a seeded one.
    return random.Random()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()
