# pinchat/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the relay and where to find it.
    """
    return {
        "message": "PinChat Relay",
        "version": "1.0",
        "features": ["pin_rooms", "default_room", "room_history", "typing_indicators"],
        "endpoints": {
            "websocket": "/ws",
            "rooms": "/rooms",
            "health": "/health",
            "metrics": "/metrics",
        },
    }
