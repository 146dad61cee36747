from __future__ import annotations

import os

import redis

DEFAULT_REDIS_URL = "redis://localhost:6379/0"


def get_redis_url() -> str:
    # UNITSTACK_REDIS_URL wins so the game can share a host with other REDIS_URL users.
    return os.environ.get("UNITSTACK_REDIS_URL") or os.environ.get("REDIS_URL", DEFAULT_REDIS_URL)


def create_redis() -> redis.Redis:
    # Profile values are stored as text; decode so callers get str, not bytes.
    return redis.Redis.from_url(get_redis_url(), decode_responses=True)
