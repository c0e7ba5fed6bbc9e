# pinchat/services/coordinator.py

from __future__ import annotations

import functools
import logging
import math
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from pinchat.core.config import Settings
from pinchat.core.errors import (
    AlreadyInRoom,
    ChatError,
    DuplicateRoom,
    InvalidInput,
    LeaveForbidden,
    NameTaken,
    NotInRoom,
    NotNamedYet,
    RoomNotFound,
)
from pinchat.models.models import (
    ChatEvent,
    Notification,
    Room,
    RoomSummary,
    Scope,
    Session,
    now_ms,
)
from pinchat.services.room_registry import RoomRegistry
from pinchat.services.session_registry import SessionRegistry

logger = logging.getLogger(__name__)

POSTABLE_KINDS = ("message", "action")


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def to_connection(connection_id: str, payload: Dict[str, Any]) -> Notification:
    return Notification(scope=Scope.CONNECTION, connection_id=connection_id, payload=payload)


def to_room(room_id: str, payload: Dict[str, Any]) -> Notification:
    return Notification(scope=Scope.ROOM, room_id=room_id, payload=payload)


def to_room_except(room_id: str, connection_id: str, payload: Dict[str, Any]) -> Notification:
    return Notification(
        scope=Scope.ROOM_EXCEPT, room_id=room_id, connection_id=connection_id, payload=payload
    )


def to_all(payload: Dict[str, Any]) -> Notification:
    return Notification(scope=Scope.ALL, payload=payload)


def chat_event_payload(room_id: str, event: ChatEvent) -> Dict[str, Any]:
    return {"type": "chat_event", "room_id": room_id, **event.model_dump()}


def _transition(rejection: str) -> Callable:
    """
    Run a transition for a live session under the coordinator lock.

    The wrapped method receives the Session instead of the connection id.
    ChatErrors become a single rejection notification for the requester
    (``name_rejected`` or ``action_feedback``); an unknown connection id is
    logged and produces nothing.
    """

    def decorator(func: Callable[..., List[Notification]]) -> Callable[..., List[Notification]]:
        @functools.wraps(func)
        def wrapper(self: "MembershipCoordinator", connection_id: str, *args, **kwargs) -> List[Notification]:
            with self._lock:
                session = self.sessions.get(connection_id)
                if session is None:
                    logger.warning("%s for unknown connection %s", func.__name__, connection_id)
                    return []
                try:
                    return func(self, session, *args, **kwargs)
                except DuplicateRoom as exc:
                    logger.error("Room id collision during %s: %s", func.__name__, exc)
                    error = ChatError("Could not create the room, please try again.")
                    return [self._rejection(connection_id, rejection, error)]
                except ChatError as exc:
                    logger.info("✗ %s rejected for %s: %s", func.__name__, connection_id, exc.message)
                    return [self._rejection(connection_id, rejection, exc)]

        return wrapper

    return decorator


# ============================================================================
# MEMBERSHIP COORDINATOR
# ============================================================================

class MembershipCoordinator:
    """
    Executes every membership transition as one atomic step.

    Each session moves Anonymous -> Lobby -> InRoom and is removed on
    disconnect. A transition validates everything first, then mutates both
    registries, then returns the notifications to fan out. A rejected
    transition leaves no trace besides its feedback notification.

    Policies (see Settings):
        AUTO_JOIN_DEFAULT_ROOM: claiming a name also joins the default room
        ALLOW_LEAVE_DEFAULT_ROOM: "leave" works in the default room too

    Name uniqueness only covers sessions currently in a room: two lobby
    sessions may hold the same name, but only one of them can enter a room
    with it.

    Thread Safety:
        All transitions hold one re-entrant lock, so concurrent callers from
        different threads are serialized. Delivery ordering across
        transitions is the caller's job (see ChatRelay).
    """

    def __init__(
        self,
        sessions: SessionRegistry,
        rooms: RoomRegistry,
        settings: Settings,
    ) -> None:
        self.sessions = sessions
        self.rooms = rooms
        self.settings = settings
        self._lock = threading.RLock()
        self.rooms.ensure_default_room()

    # ------------------------------------------------------------------
    # Notification helpers
    # ------------------------------------------------------------------

    def _rooms_updated(self) -> Notification:
        return to_all(
            {"type": "rooms_updated", "rooms": [r.model_dump() for r in self.rooms.list_rooms()]}
        )

    @staticmethod
    def _user_list(room: Room) -> Notification:
        return to_room(
            room.id,
            {"type": "user_list_updated", "room_id": room.id, "members": room.member_list()},
        )

    @staticmethod
    def _rejection(connection_id: str, rejection: str, error: ChatError) -> Notification:
        if rejection == "name_rejected":
            payload = {"type": "name_rejected", "reason": error.message, "code": error.code}
        else:
            payload = {"type": "action_feedback", "message": error.message, "code": error.code}
        return to_connection(connection_id, payload)

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    @staticmethod
    def _require_name(session: Session) -> str:
        if not session.is_named:
            raise NotNamedYet()
        return session.display_name

    def _require_name_free(self, session: Session, name: str) -> None:
        if self.sessions.name_in_room_use(name, exclude_connection_id=session.connection_id):
            raise NameTaken(f'Username "{name}" is already taken.')

    # ------------------------------------------------------------------
    # Primitives (caller holds the lock and has validated everything)
    # ------------------------------------------------------------------

    def _leave(self, session: Session, verb: str) -> Tuple[List[Notification], bool]:
        """
        Take the session out of its current room.

        Returns the notifications for the remaining members and whether the
        room was deleted because it emptied.
        """
        room_id = session.current_room_id
        name = session.display_name
        self.sessions.set_current_room(session.connection_id, None)

        room = self.rooms.get_room(room_id)
        if room is None:
            logger.warning("Session %s pointed at missing room %s", session.connection_id, room_id)
            return [], False

        self.rooms.remove_member(room_id, name)
        event = ChatEvent.system(f"{name} {verb}")
        self.rooms.append_history(room_id, event)
        logger.info("← %s left '%s' (%d members)", name, room.name, len(room.members))

        notifications = [to_room(room_id, chat_event_payload(room_id, event)), self._user_list(room)]

        deleted = False
        if not room.members and not self.rooms.is_default(room_id):
            deleted = self.rooms.delete_room(room_id)
        return notifications, deleted

    def _join(self, session: Session, room: Room, verb: str) -> Tuple[List[Notification], bool]:
        """
        Move the session into ``room``, leaving its previous room first.

        Returns the notifications and whether the previous room was deleted.
        """
        notifications: List[Notification] = []
        deleted = False
        if session.current_room_id is not None:
            notifications, deleted = self._leave(session, "has left the room.")

        name = session.display_name
        self.rooms.add_member(room.id, name)
        self.sessions.set_current_room(session.connection_id, room.id)
        event = ChatEvent.system(f"{name} {verb}")
        self.rooms.append_history(room.id, event)
        logger.info("→ %s joined '%s' (%d members)", name, room.name, len(room.members))

        notifications.append(
            to_connection(
                session.connection_id,
                {
                    "type": "room_joined",
                    "room_id": room.id,
                    "name": room.name,
                    "history": [e.model_dump() for e in room.history],
                    "members": room.member_list(),
                },
            )
        )
        notifications.append(
            to_room_except(room.id, session.connection_id, chat_event_payload(room.id, event))
        )
        notifications.append(self._user_list(room))
        return notifications, deleted

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def open_session(self, connection_id: str) -> List[Notification]:
        """Register a fresh connection and hand it the current room list."""
        with self._lock:
            self.sessions.create(connection_id)
            return [to_connection(connection_id, self._rooms_updated().payload)]

    @_transition("action_feedback")
    def send_room_list(self, session: Session) -> List[Notification]:
        return [to_connection(session.connection_id, self._rooms_updated().payload)]

    @_transition("name_rejected")
    def claim_name(self, session: Session, name: Any) -> List[Notification]:
        name = _clean(name)
        if not name:
            raise InvalidInput("Username cannot be empty.")
        if session.is_named:
            raise InvalidInput("You already have a username. Use rename to change it.")
        self._require_name_free(session, name)

        self.sessions.set_display_name(session.connection_id, name)
        logger.info("✓ %s claimed username '%s'", session.connection_id, name)

        notifications = [
            to_connection(session.connection_id, {"type": "name_accepted", "name": name}),
            self._rooms_updated(),
        ]
        if self.settings.AUTO_JOIN_DEFAULT_ROOM:
            default_room = self.rooms.ensure_default_room()
            joined, _ = self._join(session, default_room, "has joined the room.")
            notifications.extend(joined)
        return notifications

    @_transition("action_feedback")
    def rename(self, session: Session, name: Any) -> List[Notification]:
        if not session.is_named:
            raise NotNamedYet("You must set an initial username first.")
        new_name = _clean(name)
        if not new_name:
            raise InvalidInput("Username cannot be empty.")
        old_name = session.display_name
        if new_name == old_name:
            raise InvalidInput(f'Your username is already "{new_name}".')
        self._require_name_free(session, new_name)

        self.sessions.set_display_name(session.connection_id, new_name)
        logger.info("✓ %s is now %s", old_name, new_name)
        notifications = [
            to_connection(session.connection_id, {"type": "name_updated", "name": new_name})
        ]

        room_id = session.current_room_id
        if room_id is not None:
            room = self.rooms.get_room(room_id)
            self.rooms.remove_member(room_id, old_name)
            self.rooms.add_member(room_id, new_name)
            event = ChatEvent.system(f"{old_name} is now {new_name}.")
            self.rooms.append_history(room_id, event)
            notifications.append(to_room(room_id, chat_event_payload(room_id, event)))
            notifications.append(self._user_list(room))
        return notifications

    @_transition("action_feedback")
    def create_room(self, session: Session, name: Any, secret: Any) -> List[Notification]:
        display_name = self._require_name(session)
        name = _clean(name)
        secret = _clean(secret)
        if not name or not secret:
            raise InvalidInput("Room name and PIN cannot be empty.")
        if self.rooms.secret_in_use(secret):
            raise InvalidInput(f'Room with PIN "{secret}" already exists.')
        self._require_name_free(session, display_name)

        room = self.rooms.create_room(self.rooms.new_room_id(), name, secret)
        notifications, _ = self._join(session, room, "created and joined the room.")
        notifications.append(self._rooms_updated())
        return notifications

    @_transition("action_feedback")
    def join_by_secret(self, session: Session, secret: Any) -> List[Notification]:
        display_name = self._require_name(session)
        secret = _clean(secret)
        if not secret:
            raise InvalidInput("Please enter a room PIN.")
        room = self.rooms.find_by_secret(secret)
        if room is None:
            raise RoomNotFound("Room not found with that PIN.")
        if session.current_room_id == room.id:
            raise AlreadyInRoom()
        self._require_name_free(session, display_name)

        notifications, deleted = self._join(session, room, "has joined the room.")
        if deleted:
            notifications.append(self._rooms_updated())
        return notifications

    @_transition("action_feedback")
    def switch_room(self, session: Session, room_id: Any) -> List[Notification]:
        """Join a room picked from the room list. No PIN check: the id is only known from the list."""
        display_name = self._require_name(session)
        room = self.rooms.get_room(room_id) if isinstance(room_id, str) else None
        if room is None:
            raise RoomNotFound()
        if session.current_room_id == room.id:
            raise AlreadyInRoom()
        self._require_name_free(session, display_name)

        notifications, deleted = self._join(session, room, "has joined the room.")
        if deleted:
            notifications.append(self._rooms_updated())
        return notifications

    @_transition("action_feedback")
    def leave_current_room(self, session: Session) -> List[Notification]:
        if not session.in_room:
            raise NotInRoom()
        if self.rooms.is_default(session.current_room_id) and not self.settings.ALLOW_LEAVE_DEFAULT_ROOM:
            raise LeaveForbidden()

        notifications, deleted = self._leave(session, "has left the room.")
        notifications.append(to_connection(session.connection_id, {"type": "returned_to_lobby"}))
        if deleted:
            notifications.append(self._rooms_updated())
        return notifications

    def disconnect(self, connection_id: str) -> List[Notification]:
        """Final leave (if in a room) and removal of the session."""
        with self._lock:
            session = self.sessions.get(connection_id)
            if session is None:
                return []

            notifications: List[Notification] = []
            if session.in_room:
                notifications, deleted = self._leave(session, "has disconnected.")
                if deleted:
                    notifications.append(self._rooms_updated())
            self.sessions.remove(connection_id)
            return notifications

    @_transition("action_feedback")
    def post_message(
        self,
        session: Session,
        kind: str,
        text: Any,
        timestamp: Any = None,
        room_id: Optional[str] = None,
    ) -> List[Notification]:
        """
        Append a message or action to the sender's room and broadcast it.

        Late or malformed posts (no name, no room, blank text, a room the
        sender already left) are dropped without feedback.
        """
        if kind not in POSTABLE_KINDS:
            return []
        if not session.is_named or not session.in_room:
            return []
        current_room_id = session.current_room_id
        if room_id is not None and room_id != current_room_id:
            return []
        if not isinstance(text, str) or not text.strip():
            return []

        if (
            isinstance(timestamp, bool)
            or not isinstance(timestamp, (int, float))
            or not math.isfinite(timestamp)
        ):
            timestamp = now_ms()
        event = ChatEvent(kind=kind, author=session.display_name, text=text, timestamp=int(timestamp))
        self.rooms.append_history(current_room_id, event)
        logger.debug("📨 %s from %s in room %s", kind, event.author, current_room_id)
        return [to_room(current_room_id, chat_event_payload(current_room_id, event))]

    @_transition("action_feedback")
    def set_typing(self, session: Session, room_id: Any, is_typing: bool) -> List[Notification]:
        """Ephemeral typing signal for the other members; never recorded."""
        if not session.is_named or session.current_room_id is None:
            return []
        if room_id != session.current_room_id:
            return []
        return [
            to_room_except(
                room_id,
                session.connection_id,
                {
                    "type": "typing_state",
                    "room_id": room_id,
                    "author": session.display_name,
                    "is_typing": is_typing,
                },
            )
        ]

    def room_list(self) -> List[RoomSummary]:
        with self._lock:
            return self.rooms.list_rooms()
