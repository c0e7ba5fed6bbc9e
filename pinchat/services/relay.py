# pinchat/services/relay.py

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from pinchat.models.models import Notification
from pinchat.services.coordinator import MembershipCoordinator
from pinchat.services.fanout import NotificationFanout

logger = logging.getLogger(__name__)


class UnknownAction(Exception):
    """Inbound frame with an action the relay does not handle."""


class ChatRelay:
    """
    Single mutation path between the transport and the coordinator.

    Every inbound event runs its transition and delivers the resulting
    notifications while holding one asyncio lock, so no other transition
    can interleave and every member of a room observes that room's events
    in history order.

    Actions:
        set_name {name}            rename {name}
        create_room {name, secret} join_by_secret {secret}
        switch_room {room_id}      leave_room
        message {text, timestamp, room_id?}
        action {text, timestamp, room_id?}
        typing {room_id}           stop_typing {room_id}
        list_rooms
    """

    def __init__(self, coordinator: MembershipCoordinator, fanout: NotificationFanout) -> None:
        self.coordinator = coordinator
        self.fanout = fanout
        self.messages_relayed: int = 0
        self._lock = asyncio.Lock()

    async def _run(self, notifications_factory) -> List[Notification]:
        async with self._lock:
            notifications = notifications_factory()
            await self.fanout.deliver(notifications)
            return notifications

    async def connect(self, connection_id: str) -> None:
        await self._run(lambda: self.coordinator.open_session(connection_id))

    async def disconnect(self, connection_id: str) -> None:
        await self._run(lambda: self.coordinator.disconnect(connection_id))

    def _transition_for(self, connection_id: str, message: Dict[str, Any]):
        coordinator = self.coordinator
        action = message.get("action")

        if action == "set_name":
            return lambda: coordinator.claim_name(connection_id, message.get("name"))
        if action == "rename":
            return lambda: coordinator.rename(connection_id, message.get("name"))
        if action == "create_room":
            return lambda: coordinator.create_room(
                connection_id, message.get("name"), message.get("secret")
            )
        if action == "join_by_secret":
            return lambda: coordinator.join_by_secret(connection_id, message.get("secret"))
        if action == "switch_room":
            return lambda: coordinator.switch_room(connection_id, message.get("room_id"))
        if action == "leave_room":
            return lambda: coordinator.leave_current_room(connection_id)
        if action in ("message", "action"):
            return lambda: coordinator.post_message(
                connection_id,
                action,
                message.get("text"),
                message.get("timestamp"),
                message.get("room_id"),
            )
        if action == "typing":
            return lambda: coordinator.set_typing(connection_id, message.get("room_id"), True)
        if action == "stop_typing":
            return lambda: coordinator.set_typing(connection_id, message.get("room_id"), False)
        if action == "list_rooms":
            return lambda: coordinator.send_room_list(connection_id)
        raise UnknownAction(action)

    async def handle(self, connection_id: str, message: Dict[str, Any]) -> List[Notification]:
        """
        Dispatch one decoded inbound frame.

        Raises:
            UnknownAction: if the action is not part of the protocol
        """
        transition = self._transition_for(connection_id, message)
        notifications = await self._run(transition)
        if message.get("action") in ("message", "action"):
            self.messages_relayed += len(notifications)
        return notifications
