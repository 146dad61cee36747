from __future__ import annotations

from collections.abc import Generator

import redis
from fastapi.requests import HTTPConnection

from unitstack.infra.redis_client import create_redis
from unitstack.registry import SessionRegistry


def get_redis() -> Generator[redis.Redis, None, None]:
    client = create_redis()
    try:
        yield client
    finally:
        try:
            client.close()
        except Exception:
            # Some redis client versions don't require explicit close.
            pass


def get_registry(conn: HTTPConnection) -> SessionRegistry:
    return conn.app.state.registry
