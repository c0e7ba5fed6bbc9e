# pinchat/api/routes/rooms.py

from typing import List

from fastapi import APIRouter

from pinchat.core import state
from pinchat.models.models import RoomSummary

router = APIRouter()

# ============================================================================
# ROOM LIST ENDPOINT
# ============================================================================

@router.get("/rooms", response_model=List[RoomSummary])
async def list_rooms():
    """
    List all live rooms.

    Read-only: rooms are created and joined over the WebSocket so every
    change goes through the same serialized path. PINs are never exposed,
    only whether one is required.
    """
    return state.coordinator.room_list()
