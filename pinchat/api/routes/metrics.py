# pinchat/api/routes/metrics.py
from datetime import datetime, timezone

from fastapi import APIRouter

from pinchat.core import state

router = APIRouter()

@router.get("/metrics")
async def get_metrics():
    """
    Usage snapshot of the relay.

    Example Response:
        {
            "uptime_hours": 1.5,
            "messages_relayed": 420,
            "messages_per_second": 0.08,
            "concurrent_connections": 12,
            "named_sessions": 10,
            "sessions_in_rooms": 9,
            "total_rooms": 3,
            "history_events": 512
        }
    """
    uptime_seconds = (datetime.now(timezone.utc) - state.app_start_time).total_seconds()
    messages = state.relay.messages_relayed

    sessions = state.session_registry.all()
    rooms = list(state.room_registry.rooms.values())

    return {
        # Statistics
        "uptime_hours": round(uptime_seconds / 3600, 2) if uptime_seconds > 0 else 0,
        "messages_relayed": messages,
        "messages_per_second": round(messages / uptime_seconds, 2) if uptime_seconds > 0 else 0,

        # Capacity
        "concurrent_connections": len(state.connection_manager.channels),
        "named_sessions": sum(1 for s in sessions if s.is_named),
        "sessions_in_rooms": sum(1 for s in sessions if s.in_room),
        "total_rooms": len(rooms),
        "history_events": sum(len(room.history) for room in rooms),
        "history_limit": state.room_registry.history_limit,
    }
