# pinchat/main.py

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pinchat.core import state
from pinchat.core.config import settings
from pinchat.core.logging import setup_logging, get_logger
from pinchat.api.routes import root, health, metrics, rooms
from pinchat.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="PinChat Relay")

# CORS (relaxed for now, tighten per deployment)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)

# WebSocket routes
app.include_router(websocket_module.router)


@app.on_event("startup")
async def startup_event():
    default_room = state.room_registry.ensure_default_room()
    logger.info(
        "🚀 Relay starting - default room '%s', auto-join %s, leave default %s, history limit %s",
        default_room.id,
        "on" if settings.AUTO_JOIN_DEFAULT_ROOM else "off",
        "allowed" if settings.ALLOW_LEAVE_DEFAULT_ROOM else "forbidden",
        settings.HISTORY_LIMIT or "none",
    )


def run() -> None:
    import uvicorn
    uvicorn.run("pinchat.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
