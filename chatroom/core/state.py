# chatroom/core/state.py
from __future__ import annotations

from chatroom.services.room_manager import RoomManager

# Global singletons for app state
room_manager = RoomManager()
