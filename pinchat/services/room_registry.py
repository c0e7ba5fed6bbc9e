# pinchat/services/room_registry.py

from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from pinchat.core.errors import DuplicateRoom
from pinchat.models.models import ChatEvent, Room, RoomSummary

logger = logging.getLogger(__name__)


# ============================================================================
# ROOM REGISTRY
# ============================================================================
class RoomRegistry:
    """
    In-memory room metadata, membership and history.

    Rooms live only as long as they have members, except the default room,
    which is created at startup and never deleted. Nothing is persisted: a
    restart starts from the default room alone.

    Attributes:
        rooms: Dictionary mapping room_id -> Room object
        history_limit: Max events kept per room (0 = unbounded)

    Usage:
        registry = RoomRegistry()
        registry.ensure_default_room()
        room = registry.create_room(registry.new_room_id(), "Plans", "1234")
        summaries = registry.list_rooms()
    """

    def __init__(
        self,
        default_room_id: str = "general",
        default_room_name: str = "General",
        history_limit: int = 0,
    ) -> None:
        self.rooms: Dict[str, Room] = {}
        self.default_room_id = default_room_id
        self.default_room_name = default_room_name
        self.history_limit = history_limit

    def ensure_default_room(self) -> Room:
        """
        Create the default room if it is missing.

        Idempotent; called once at startup and safe to call again.
        """
        room = self.rooms.get(self.default_room_id)
        if room is None:
            room = Room(id=self.default_room_id, name=self.default_room_name)
            self.rooms[room.id] = room
            logger.info("✓ Default room '%s' ready", room.name)
        return room

    def is_default(self, room_id: str) -> bool:
        return room_id == self.default_room_id

    def new_room_id(self) -> str:
        """Random id, regenerated until it does not clash with a live room."""
        room_id = uuid.uuid4().hex
        while room_id in self.rooms:
            room_id = uuid.uuid4().hex
        return room_id

    def create_room(self, room_id: str, name: str, secret: str) -> Room:
        """
        Register a new room.

        Raises:
            DuplicateRoom: if room_id is already registered
        """
        if room_id in self.rooms:
            raise DuplicateRoom(f"Room id {room_id} already registered")

        room = Room(id=room_id, name=name, secret=secret)
        self.rooms[room.id] = room
        logger.info("✓ Created room: %s (%s)", room.name, room.id)
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def find_by_secret(self, secret: str) -> Optional[Room]:
        """First room whose PIN matches, or None. The default room never matches."""
        for room in self.rooms.values():
            if room.secret is not None and room.secret == secret:
                return room
        return None

    def secret_in_use(self, secret: str) -> bool:
        return self.find_by_secret(secret) is not None

    def add_member(self, room_id: str, name: str) -> None:
        self.rooms[room_id].members.add(name)

    def remove_member(self, room_id: str, name: str) -> None:
        self.rooms[room_id].members.discard(name)

    def append_history(self, room_id: str, event: ChatEvent) -> None:
        """
        Append an event to the room history.

        With a positive history_limit the oldest events are dropped, so late
        joiners see a shorter history.
        """
        history = self.rooms[room_id].history
        history.append(event)
        if self.history_limit > 0 and len(history) > self.history_limit:
            del history[: len(history) - self.history_limit]

    def delete_room(self, room_id: str) -> bool:
        """
        Delete a room.

        Returns:
            True if the room was deleted, False if it didn't exist or is the
            default room
        """
        if self.is_default(room_id):
            logger.warning("Refusing to delete default room '%s'", room_id)
            return False
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False
        logger.info("✓ Deleted room: %s (%s)", room.name, room_id)
        return True

    def list_rooms(self) -> List[RoomSummary]:
        """Room summaries for clients. Never includes the PIN itself."""
        return [room.summary() for room in self.rooms.values()]
