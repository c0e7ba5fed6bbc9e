# pinchat/services/fanout.py

from __future__ import annotations

import logging
from typing import Iterable, List

from pinchat.models.models import Notification, Scope
from pinchat.services.connection_manager import ConnectionManager
from pinchat.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


class NotificationFanout:
    """
    Delivers coordinator notifications to one, some or all connections.

    Room recipients are looked up in the SessionRegistry when the
    notification is delivered, so delivery must happen before the next
    transition runs (ChatRelay guarantees this).

    Error Handling:
        A failed send is logged and skipped; the rest of the set still gets
        the payload. Cleanup of the broken connection is left to its own
        WebSocket handler, which will see the disconnect.
    """

    def __init__(self, connections: ConnectionManager, sessions: SessionRegistry) -> None:
        self.connections = connections
        self.sessions = sessions

    async def _send_many(self, connection_ids: Iterable[str], payload: dict) -> int:
        delivered = 0
        for connection_id in connection_ids:
            try:
                await self.connections.send_json(connection_id, payload)
                delivered += 1
            except Exception as e:
                logger.error(
                    "Send error to %s (%s): %s", connection_id, payload.get("type"), e
                )
        return delivered

    async def to_connection(self, connection_id: str, payload: dict) -> int:
        return await self._send_many([connection_id], payload)

    async def to_room(self, room_id: str, payload: dict) -> int:
        return await self._send_many(self.sessions.connections_in_room(room_id), payload)

    async def to_room_except(self, room_id: str, connection_id: str, payload: dict) -> int:
        recipients = [c for c in self.sessions.connections_in_room(room_id) if c != connection_id]
        return await self._send_many(recipients, payload)

    async def to_all(self, payload: dict) -> int:
        return await self._send_many(self.connections.connection_ids(), payload)

    async def deliver(self, notifications: List[Notification]) -> None:
        """Deliver notifications in order, one at a time."""
        for notification in notifications:
            if notification.scope is Scope.CONNECTION:
                await self.to_connection(notification.connection_id, notification.payload)
            elif notification.scope is Scope.ROOM:
                await self.to_room(notification.room_id, notification.payload)
            elif notification.scope is Scope.ROOM_EXCEPT:
                await self.to_room_except(
                    notification.room_id, notification.connection_id, notification.payload
                )
            else:
                await self.to_all(notification.payload)
