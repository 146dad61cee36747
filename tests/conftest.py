from __future__ import annotations

from collections.abc import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient

from unitstack.catalog import UnitCatalog
from unitstack.config import GameConfig
from unitstack.session import GameSession


@pytest.fixture()
def catalog() -> UnitCatalog:
    return UnitCatalog.default()


@pytest.fixture()
def config() -> GameConfig:
    # Mirrors the reference scenario: 30 ticks, 3 starting units, penalty 3, level-up every 5.
    return GameConfig(
        total_ticks=30,
        starting_count=3,
        max_count=6,
        wrong_penalty=3,
        level_up_threshold=5,
        fever_streak=0,
    )


@pytest.fixture()
def started(catalog: UnitCatalog, config: GameConfig) -> GameSession:
    session = GameSession(catalog=catalog, config=config, seed=42)
    session.start()
    return session


@pytest.fixture()
def client_and_redis(monkeypatch: pytest.MonkeyPatch) -> Generator[tuple[TestClient, fakeredis.FakeRedis], None, None]:
    """FastAPI TestClient backed by fakeredis, with the wall-clock timer off."""

    monkeypatch.setenv("UNITSTACK_AUTOTICK", "0")
    monkeypatch.setenv("UNITSTACK_TOTAL_TICKS", "30")
    monkeypatch.setenv("UNITSTACK_LEVEL_UP_THRESHOLD", "5")
    monkeypatch.setenv("UNITSTACK_FEVER_STREAK", "0")

    from unitstack.api.deps import get_redis
    from unitstack.main import app

    r = fakeredis.FakeRedis(decode_responses=True)

    def _override() -> Generator[fakeredis.FakeRedis, None, None]:
        yield r

    app.dependency_overrides[get_redis] = _override
    with TestClient(app) as c:
        yield c, r
    app.dependency_overrides.clear()
