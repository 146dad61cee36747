from fastapi import FastAPI
import logging
import os

from unitstack.api.routes import router
from unitstack.config import config_from_env
from unitstack.registry import SessionRegistry
from unitstack.websocket_hub import SessionWebSocketHub

app = FastAPI(title="unitstack", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _autotick_from_env() -> bool:
    # UNITSTACK_AUTOTICK=0 turns the wall-clock timer off (use POST /sessions/{id}/tick instead).
    return os.environ.get("UNITSTACK_AUTOTICK", "1") != "0"


def _retention_from_env() -> float:
    # Seconds an ended session stays readable before the registry drops it.
    return float(os.environ.get("UNITSTACK_ENDED_RETENTION_SECONDS", "60"))


@app.on_event("startup")
async def _startup() -> None:
    config = config_from_env()
    app.state.registry = SessionRegistry(
        config=config,
        hub=SessionWebSocketHub(),
        autotick=_autotick_from_env(),
        ended_retention_seconds=_retention_from_env(),
    )
    logger.info("unitstack ready total_ticks=%s tick_seconds=%s", config.total_ticks, config.tick_seconds)


@app.on_event("shutdown")
async def _shutdown() -> None:
    registry = getattr(app.state, "registry", None)
    if registry is not None:
        await registry.close_all()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "unitstack", "version": "0.1.0"}
