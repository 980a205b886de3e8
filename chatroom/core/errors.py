# chatroom/core/errors.py

from __future__ import annotations


class ChatError(Exception):
    """Base class for failures reported synchronously by room operations."""


class NotInRoomError(ChatError):
    """Raised when a participant sends without being attached to a room."""

    def __init__(self, name: str):
        super().__init__(f"{name} is not in a room")
        self.name = name


class ParticipantClosedError(ChatError):
    """Raised when a participant whose loop was terminated by leave is reused."""

    def __init__(self, name: str):
        super().__init__(f"{name} has left and cannot be reused")
        self.name = name


class NameTakenError(ChatError):
    """Raised when joining a room where another participant holds the same name."""

    def __init__(self, name: str, room_name: str):
        super().__init__(f"'{name}' is already taken in room '{room_name}'")
        self.name = name
        self.room_name = room_name


class RoomClosedError(ChatError):
    """Raised when joining a room that is closing or closed."""

    def __init__(self, room_name: str):
        super().__init__(f"room '{room_name}' is closed")
        self.room_name = room_name
