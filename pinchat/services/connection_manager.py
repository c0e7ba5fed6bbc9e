# pinchat/services/connection_manager.py

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Protocol

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Anything that can push a JSON-serializable dict to one client."""

    async def send_json(self, data: Any) -> None: ...


# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Owns the live transport channels.

    Each accepted WebSocket gets an opaque connection id; everything above
    this layer (sessions, rooms, fanout) only ever sees the id. Room
    membership is not tracked here, it lives in the registries.

    Data Structures:
        channels: Maps connection_id -> channel (WebSocket)
                  Example: {"3f2a...": websocket1}
    """

    def __init__(self) -> None:
        self.channels: Dict[str, Channel] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """
        Accept a new WebSocket connection and return its connection id.

        The client starts anonymous; it has to claim a name before it can
        enter a room.
        """
        await websocket.accept()
        return self.register(websocket)

    def register(self, channel: Channel) -> str:
        connection_id = uuid.uuid4().hex
        self.channels[connection_id] = channel
        logger.info("✓ Connection %s opened. Total: %d", connection_id, len(self.channels))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self.channels.pop(connection_id, None) is not None:
            logger.info("✗ Connection %s closed. Total: %d", connection_id, len(self.channels))

    def connection_ids(self) -> List[str]:
        return list(self.channels.keys())

    async def send_json(self, connection_id: str, payload: dict) -> None:
        """
        Send one payload to one connection.

        Raises:
            KeyError: if the connection is already gone
        """
        channel = self.channels[connection_id]
        await channel.send_json(payload)
