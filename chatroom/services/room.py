# chatroom/services/room.py

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, Dict, List

from chatroom.core.errors import NameTakenError, RoomClosedError
from chatroom.models.models import Message

if TYPE_CHECKING:
    from chatroom.services.participant import Participant

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM
# ============================================================================

class Room:
    """
    A named set of participants and the fan-out point for their messages.

    Membership is an ordered map of name -> participant; iteration follows join
    order. Names are unique within a room. The room name itself is only
    descriptive, ``id`` identifies the room.

    Data Structures:
        _members: name -> Participant, guarded by _lock
        _broadcast_lock: serializes fan-out so every member sees broadcasts
                         in the same order

    Joining and leaving go through Participant.join / Participant.leave;
    Room.join and Room.leave are the same operations seen from the room.
    """

    def __init__(self, name: str) -> None:
        self.id = str(uuid.uuid4())
        self.name = name
        self.message_count = 0
        self._closed = False

        self._members: Dict[str, Participant] = {}
        self._lock = asyncio.Lock()
        self._broadcast_lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Room(name={self.name!r}, members={self.chatters()!r})"

    @property
    def closed(self) -> bool:
        """True once close() has started; a closed room admits nobody."""
        return self._closed

    @property
    def member_count(self) -> int:
        return len(self._members)

    def chatters(self) -> List[str]:
        """Names of the current members in join order, as of this call."""
        return list(self._members)

    async def join(self, participant: Participant) -> None:
        await participant.join(self)

    async def leave(self, participant: Participant) -> None:
        await participant.leave(self)

    # ------------------------------------------------------------------------
    # Membership (called by Participant)
    # ------------------------------------------------------------------------

    def _check_admission(self, participant: Participant) -> None:
        if self._closed:
            raise RoomClosedError(self.name)
        holder = self._members.get(participant.name)
        if holder is not None and holder is not participant:
            raise NameTakenError(participant.name, self.name)

    async def _admit(self, participant: Participant) -> None:
        async with self._lock:
            self._check_admission(participant)
            self._members[participant.name] = participant
            participant._room = self
            member_count = len(self._members)

        logger.info("→ %s joined '%s' (%d members)", participant.name, self.name, member_count)

    async def _evict(self, participant: Participant) -> bool:
        """Remove participant and clear its room reference. False if not a member."""
        async with self._lock:
            if self._members.get(participant.name) is not participant:
                return False
            del self._members[participant.name]
            if participant._room is self:
                participant._room = None
            member_count = len(self._members)

        logger.info("← %s left '%s' (%d members)", participant.name, self.name, member_count)
        return True

    # ------------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------------

    async def broadcast(self, sender: str, contents: str) -> int:
        """
        Deliver a message to every current member, in join order.

        Args:
            sender: Name shown as the message author
            contents: Message text

        Returns:
            Number of members the message was put in the mailbox of

        Note:
            Membership is snapshotted when the fan-out starts. A member that
            leaves while the fan-out is running is skipped. With the "block"
            overflow policy this waits on each full mailbox in turn.
        """
        async with self._broadcast_lock:
            async with self._lock:
                members = list(self._members.values())
            self.message_count += 1

            delivered = 0
            for member in members:
                if member.room is not self:
                    logger.debug("Skipped %s: left '%s' during broadcast", member.name, self.name)
                    continue
                message = Message(
                    sender=sender,
                    room_id=self.id,
                    room_name=self.name,
                    contents=contents,
                )
                if await member._deliver(message):
                    delivered += 1

        logger.debug("📨 %s -> '%s': delivered to %d/%d", sender, self.name, delivered, len(members))
        return delivered

    async def flush(self) -> None:
        """
        Wait until every message broadcast before this call has been handled.

        A broadcast already fanning out when flush is called completes first
        and is included. Messages broadcast after that are not waited for, so
        steady traffic cannot hold flush up. Members that leave while flushing
        are not waited on. Called from a member's own reaction, that member's
        mailbox is not waited on.
        """
        async with self._broadcast_lock:
            async with self._lock:
                watermarks = [(member, member._watermark) for member in self._members.values()]
        await asyncio.gather(*(member._drained(mark) for member, mark in watermarks))

    async def close(self) -> None:
        """
        Flush pending messages, then make every member leave.

        The room stops admitting participants as soon as close starts.
        """
        self._closed = True
        await self.flush()

        async with self._lock:
            members = list(self._members.values())
        for member in members:
            await member.leave(self)

        logger.info("✗ Closed room '%s' (%d members removed)", self.name, len(members))
