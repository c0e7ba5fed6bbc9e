# pinchat/core/errors.py

from __future__ import annotations


class ChatError(Exception):
    """
    Base class for rejected transitions.

    The message is shown to the user as-is, the code lets clients (and tests)
    tell rejections apart without parsing text.
    """

    code = "error"
    default_message = "Request rejected."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ChatError):
    code = "invalid_input"
    default_message = "Invalid input."


class NameTaken(ChatError):
    code = "name_taken"
    default_message = "Username is already taken."


class NotNamedYet(ChatError):
    code = "not_named_yet"
    default_message = "Please set your username first."


class RoomNotFound(ChatError):
    code = "room_not_found"
    default_message = "Room not found."


class DuplicateRoom(ChatError):
    """Room id collision. Ids are generated, so this is an internal fault."""

    code = "duplicate_room"
    default_message = "Room id already registered."


class AlreadyInRoom(ChatError):
    code = "already_in_room"
    default_message = "You are already in this room."


class NotInRoom(ChatError):
    code = "not_in_room"
    default_message = "You are not currently in a room."


class LeaveForbidden(ChatError):
    code = "leave_forbidden"
    default_message = "You cannot leave the default room. Switch to another room instead."
