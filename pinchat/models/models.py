# pinchat/models/models.py
from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel, Field

SYSTEM_AUTHOR = "System"

EventKind = Literal["system", "message", "action"]


def now_ms() -> int:
    """Server clock in epoch milliseconds, the unit clients stamp messages with."""
    return int(time.time() * 1000)


class Session(BaseModel):
    """Identity and membership of one live connection."""

    connection_id: str
    display_name: Optional[str] = None
    # None means "in the lobby"
    current_room_id: Optional[str] = None

    @property
    def is_named(self) -> bool:
        return self.display_name is not None

    @property
    def in_room(self) -> bool:
        return self.current_room_id is not None


class ChatEvent(BaseModel):
    kind: EventKind
    author: str
    text: str
    timestamp: int

    @classmethod
    def system(cls, text: str) -> "ChatEvent":
        return cls(kind="system", author=SYSTEM_AUTHOR, text=text, timestamp=now_ms())


class Room(BaseModel):
    id: str
    name: str
    # PIN; None only for the default room
    secret: Optional[str] = None
    members: Set[str] = Field(default_factory=set)
    history: List[ChatEvent] = Field(default_factory=list)
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def summary(self) -> "RoomSummary":
        return RoomSummary(id=self.id, name=self.name, requires_secret=self.secret is not None)

    def member_list(self) -> List[str]:
        return sorted(self.members)


class RoomSummary(BaseModel):
    id: str
    name: str
    requires_secret: bool


class Scope(str, Enum):
    """Who a notification is delivered to."""

    CONNECTION = "connection"
    ROOM = "room"
    ROOM_EXCEPT = "room_except"
    ALL = "all"


class Notification(BaseModel):
    scope: Scope
    payload: Dict[str, Any]
    connection_id: Optional[str] = None
    room_id: Optional[str] = None

    @property
    def type(self) -> str:
        return self.payload.get("type", "")
