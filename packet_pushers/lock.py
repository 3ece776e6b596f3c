from __future__ import annotations

from contextlib import contextmanager
from uuid import uuid4

import redis

from packet_pushers.errors import SessionBusy


def _lock_key(session_id: str) -> str:
    return f"pushers:lock:session:{session_id}"


@contextmanager
def session_lock(*, r: redis.Redis, session_id: str, ttl_ms: int = 5_000):
    """Per-session mutual exclusion for read-execute-write.

    Each holder writes a unique token and only deletes the key if it still holds it,
    so an expired lock re-acquired by another request is not released from under it.
    The check-then-delete is not atomic; the version check in the store covers that gap.
    """

    key = _lock_key(session_id)
    token = uuid4().hex
    if not r.set(key, token, nx=True, px=ttl_ms):
        raise SessionBusy("Session is busy")
    try:
        yield
    finally:
        if r.get(key) == token:
            r.delete(key)
