from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import redis


def _lock_key(profile_id: str) -> str:
    return f"unitstack:lock:profile:{profile_id}"


@contextmanager
def profile_lock(*, r: redis.Redis, profile_id: str, ttl_ms: int = 5_000) -> Iterator[str]:
    """Per-profile lock around read-modify-write of money, units and high score.

    Fails fast with `ValueError` instead of waiting. The key carries a random token
    and is only released by its holder, so a lock that expired mid-operation and
    was re-acquired elsewhere is left alone.
    """

    key = _lock_key(profile_id)
    token = uuid4().hex
    if not r.set(key, token, nx=True, px=ttl_ms):
        raise ValueError("Profile is busy")
    try:
        yield token
    finally:
        if r.get(key) == token:
            r.delete(key)
