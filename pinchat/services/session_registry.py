# pinchat/services/session_registry.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pinchat.models.models import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Tracks the identity and current room of every live connection.

    Pure state: nothing here talks to the transport. The coordinator is the
    only writer.

    Data Structures:
        sessions: Maps connection_id -> Session
                  Example: {"c1a2...": Session(display_name="alice", current_room_id="general")}
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, Session] = {}

    def create(self, connection_id: str) -> Session:
        session = Session(connection_id=connection_id)
        self.sessions[connection_id] = session
        return session

    def get(self, connection_id: str) -> Optional[Session]:
        return self.sessions.get(connection_id)

    def set_display_name(self, connection_id: str, name: str) -> None:
        self.sessions[connection_id].display_name = name

    def set_current_room(self, connection_id: str, room_id: Optional[str]) -> None:
        self.sessions[connection_id].current_room_id = room_id

    def remove(self, connection_id: str) -> Optional[Session]:
        return self.sessions.pop(connection_id, None)

    def all(self) -> List[Session]:
        return list(self.sessions.values())

    def connections_in_room(self, room_id: str) -> List[str]:
        return [
            s.connection_id for s in self.sessions.values() if s.current_room_id == room_id
        ]

    def name_in_room_use(self, name: str, exclude_connection_id: Optional[str] = None) -> bool:
        """
        True if a session other than ``exclude_connection_id`` holds ``name``
        while sitting in a room. Lobby occupants do not reserve their name.
        """
        for session in self.sessions.values():
            if session.connection_id == exclude_connection_id:
                continue
            if session.current_room_id is not None and session.display_name == name:
                return True
        return False
