from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from helpers import ScriptedRandom
from packet_pushers.api.deps import get_redis, get_rng
from packet_pushers.main import app


@pytest.fixture()
def r() -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def rng() -> ScriptedRandom:
    """The random source handed to every request; tests may `script()` upcoming draws."""

    return ScriptedRandom(1234)


@pytest.fixture()
def client_and_redis(
    r: fakeredis.FakeRedis,
    rng: ScriptedRandom,
) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    app.dependency_overrides[get_rng] = lambda: rng
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()


@pytest.fixture()
def client(client_and_redis: tuple[TestClient, fakeredis.FakeRedis]) -> TestClient:
    return client_and_redis[0]
