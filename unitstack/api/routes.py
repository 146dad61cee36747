from __future__ import annotations

from uuid import UUID

import redis
from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from unitstack.api.deps import get_redis, get_registry
from unitstack.api.models import (
    AnswerRequest,
    ProfileView,
    SessionCreateRequest,
    SessionView,
    UnitView,
)
from unitstack.registry import SessionRegistry
from unitstack.session_loop import SessionLoop
from unitstack.storage import RedisProfileStore, list_profiles

router = APIRouter()


def _require_loop(registry: SessionRegistry, session_id: UUID) -> SessionLoop:
    loop = registry.get(session_id)
    if loop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return loop


@router.websocket("/ws/sessions/{session_id}")
async def session_updates_ws(
    websocket: WebSocket,
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
) -> None:
    sid = str(session_id)
    await registry.hub.connect(sid, websocket)

    try:
        # Keep the socket open; client can optionally send pings.
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await registry.hub.disconnect(sid, websocket)
    except Exception:
        await registry.hub.disconnect(sid, websocket)
        raise


@router.get("/healthcheck")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def create_session_route(
    payload: SessionCreateRequest,
    r: redis.Redis = Depends(get_redis),
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    try:
        loop = await registry.create(r=r, profile_id=payload.profile_id, seed=payload.seed)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return loop.snapshot()


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session_route(session_id: UUID, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    return _require_loop(registry, session_id).snapshot()


# Invalid transitions (e.g. pausing an ended session) are ignored by the session;
# these routes then simply return the unchanged snapshot.


@router.post("/sessions/{session_id}/pause", response_model=SessionView)
async def pause_route(session_id: UUID, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    loop = _require_loop(registry, session_id)
    loop.pause()
    await loop.drain()
    return loop.snapshot()


@router.post("/sessions/{session_id}/resume", response_model=SessionView)
async def resume_route(session_id: UUID, registry: SessionRegistry = Depends(get_registry)) -> SessionView:
    loop = _require_loop(registry, session_id)
    loop.resume()
    await loop.drain()
    return loop.snapshot()


@router.post("/sessions/{session_id}/answer", response_model=SessionView)
async def answer_route(
    session_id: UUID,
    payload: AnswerRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    loop = _require_loop(registry, session_id)
    loop.answer(payload.direction)
    await loop.drain()
    return loop.snapshot()


@router.post("/sessions/{session_id}/tick", response_model=SessionView)
async def tick_route(
    session_id: UUID,
    count: int = 1,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionView:
    """Dev endpoint: advance the countdown manually when the wall-clock timer is off."""

    if registry.autotick:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Manual ticks are disabled while autotick is on")
    if count < 1 or count > 3600:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be 1..3600")

    loop = _require_loop(registry, session_id)
    loop.tick(count)
    await loop.drain()
    return loop.snapshot()


@router.get("/profiles")
async def list_profiles_route(r: redis.Redis = Depends(get_redis)) -> dict[str, list[str]]:
    return {"profiles": list_profiles(r=r)}


@router.get("/profiles/{profile_id}", response_model=ProfileView)
async def get_profile_route(profile_id: str, r: redis.Redis = Depends(get_redis)) -> ProfileView:
    store = RedisProfileStore(r=r, profile_id=profile_id)
    return ProfileView(
        profile_id=profile_id,
        money=store.available_money(),
        high_score=store.high_score(),
        units=[u.to_view() for u in store.current_catalog()],
    )


@router.post("/profiles/{profile_id}/units/{unit_id}/level_up", response_model=UnitView)
async def level_up_unit_route(profile_id: str, unit_id: UUID, r: redis.Redis = Depends(get_redis)) -> UnitView:
    store = RedisProfileStore(r=r, profile_id=profile_id)
    try:
        unit = store.raise_level(unit_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    return unit.to_view()


@router.get("/profiles/{profile_id}/results")
async def get_profile_results_route(
    profile_id: str,
    count: int = 20,
    r: redis.Redis = Depends(get_redis),
) -> dict[str, object]:
    if count < 1 or count > 200:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="count must be between 1 and 200")

    store = RedisProfileStore(r=r, profile_id=profile_id)
    return {"profile_id": profile_id, "results": store.recent_results(count=count)}
