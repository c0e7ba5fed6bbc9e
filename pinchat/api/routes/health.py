# pinchat/api/routes/health.py

from fastapi import APIRouter

from pinchat.core import state

router = APIRouter()

@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns:
        dict: Status, connection count, room count, rooms with members
    """
    rooms = state.room_registry.rooms.values()
    return {
        "status": "healthy",
        "connections": len(state.connection_manager.channels),
        "rooms": len(state.room_registry.rooms),
        "active_rooms_with_members": sum(1 for room in rooms if room.members),
    }
