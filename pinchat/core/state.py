# pinchat/core/state.py
from __future__ import annotations

from datetime import datetime, timezone

from pinchat.core.config import Settings, settings
from pinchat.services.connection_manager import ConnectionManager
from pinchat.services.coordinator import MembershipCoordinator
from pinchat.services.fanout import NotificationFanout
from pinchat.services.relay import ChatRelay
from pinchat.services.room_registry import RoomRegistry
from pinchat.services.session_registry import SessionRegistry

# Global singletons for app state
session_registry: SessionRegistry
room_registry: RoomRegistry
connection_manager: ConnectionManager
coordinator: MembershipCoordinator
fanout: NotificationFanout
relay: ChatRelay

# Metrics
app_start_time: datetime


def reset(config: Settings | None = None) -> None:
    """(Re)build the in-memory state. Called at import and by tests."""
    global session_registry, room_registry, connection_manager
    global coordinator, fanout, relay, app_start_time

    config = config or settings
    session_registry = SessionRegistry()
    room_registry = RoomRegistry(
        default_room_id=config.DEFAULT_ROOM_ID,
        default_room_name=config.DEFAULT_ROOM_NAME,
        history_limit=config.HISTORY_LIMIT,
    )
    connection_manager = ConnectionManager()
    coordinator = MembershipCoordinator(session_registry, room_registry, config)
    fanout = NotificationFanout(connection_manager, session_registry)
    relay = ChatRelay(coordinator, fanout)
    app_start_time = datetime.now(timezone.utc)


reset()
