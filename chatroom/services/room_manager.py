# chatroom/services/room_manager.py

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from chatroom.services.room import Room

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM DIRECTORY
# ============================================================================

class RoomManager:
    """
    In-memory directory of live rooms.

    Room names are descriptive and may repeat; rooms are keyed by their
    generated ``id``. Nothing is persisted, a restart starts empty.

    Attributes:
        rooms: Dictionary mapping room_id -> Room object

    Usage:
        room_manager = RoomManager()
        room = room_manager.create_room("General")
        await participant.join(room)
        await room_manager.delete_room(room.id)
    """

    def __init__(self) -> None:
        self.rooms: Dict[str, Room] = {}

    def create_room(self, name: str) -> Room:
        """
        Create a new, empty room and register it.

        Args:
            name: Room name

        Returns:
            Room: The newly created room
        """
        room = Room(name)
        self.rooms[room.id] = room
        logger.info("✓ Created room: %s (%s)", room.name, room.id)
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        """Get a room by ID, None if unknown."""
        return self.rooms.get(room_id)

    def list_rooms(self) -> List[Room]:
        return list(self.rooms.values())

    async def delete_room(self, room_id: str) -> bool:
        """
        Close a room and drop it from the directory.

        Pending messages are flushed and every member leaves before the room
        is removed.

        Returns:
            True if room was deleted, False if room didn't exist
        """
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False
        await room.close()
        logger.info("✓ Deleted room: %s", room_id)
        return True

    def get_rooms_info(self) -> Dict[str, dict]:
        """
        Get information about all rooms.

        Returns:
            Dict mapping room_id to room info (name, member_count, message_count)
        """
        return {
            room_id: {
                "name": room.name,
                "member_count": room.member_count,
                "message_count": room.message_count,
            }
            for room_id, room in self.rooms.items()
        }
