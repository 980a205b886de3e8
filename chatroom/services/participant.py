# chatroom/services/participant.py

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Coroutine, Dict, Optional, Union

from chatroom.core.config import settings
from chatroom.core.errors import NotInRoomError, ParticipantClosedError
from chatroom.models.models import DeliveryPolicy, Message

if TYPE_CHECKING:
    from chatroom.services.room import Room

logger = logging.getLogger(__name__)

Reaction = Callable[[Message], Union[None, Awaitable[None]]]

# Returned by _until_quit when the termination signal wins the race
_QUIT = object()

# Task waiting in _stop -> consumption loop task it is waiting for
_stop_waits: Dict[asyncio.Task, asyncio.Task] = {}


def _discard(message: Message) -> None:
    return None


# ============================================================================
# PARTICIPANT
# ============================================================================

class Participant:
    """
    A chat identity with its own mailbox and a replaceable reaction function.

    Every participant runs one background task (the consumption loop) for its
    whole lifetime. The loop is the only reader of the mailbox and the only
    caller of the reaction function, so a participant sees the messages of a
    room in broadcast order and never runs two reactions at once.

    Lifecycle:
        1. Created detached, with a reaction that discards everything
        2. join(room) attaches it (leaving any previous room first)
        3. leave(room) detaches it and terminates the loop for good

    A participant must be created while an event loop is running, and cannot
    be reused after leave() terminated it. If the loop dies for any other
    reason the participant counts as closed from then on.

    Liveness:
        With a bounded mailbox and the "block" overflow policy, a slow reaction
        stalls the sender and every member after it in join order. A reaction
        that sends into its own room, or flushes it, while its mailbox is full
        will wait on itself. The default unbounded mailbox never blocks a sender.

    Usage:
        carl = Participant("carl")
        carl.set_reaction(print)
        await carl.join(room)
        await carl.send("hi")
        await carl.leave(room)
    """

    def __init__(self, name: str, policy: Optional[DeliveryPolicy] = None) -> None:
        self.name = name
        self.policy = policy or DeliveryPolicy.from_settings()

        self._room: Optional[Room] = None
        self._reaction: Reaction = _discard
        self._inbox: asyncio.Queue[Message] = asyncio.Queue(maxsize=self.policy.mailbox_size)
        self._quit = asyncio.Event()
        self._membership_lock = asyncio.Lock()

        # Mailbox positions: messages ever enqueued, messages taken off the
        # front (handled or evicted), and the position being handled right now
        self._enqueued = 0
        self._removed = 0
        self._in_flight: Optional[int] = None
        self._progress = asyncio.Event()

        # The mailbox exists before the loop is scheduled, so nothing delivered
        # ahead of the loop's first iteration is lost
        self._task = asyncio.get_running_loop().create_task(
            self._consume(), name=f"participant:{name}"
        )
        self._task.add_done_callback(self._on_loop_done)

    def __repr__(self) -> str:
        room = self._room.name if self._room else None
        return f"Participant(name={self.name!r}, room={room!r}, closed={self.closed})"

    @property
    def room(self) -> Optional[Room]:
        """The room this participant is attached to, or None."""
        return self._room

    @property
    def closed(self) -> bool:
        return self._quit.is_set()

    @property
    def pending(self) -> int:
        """Messages waiting in the mailbox."""
        return self._inbox.qsize()

    # ------------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------------

    async def join(self, room: Room) -> None:
        """
        Attach to a room and announce the arrival to everyone in it.

        Args:
            room: Room to join

        Raises:
            ParticipantClosedError: this participant already left a room
            NameTakenError: another participant in room holds this name
            RoomClosedError: room is closing

        Note:
            A participant belongs to at most one room. Joining a second room
            leaves the first one (with a "has left" announcement there) but
            keeps the consumption loop running. Joining the current room again
            does nothing. Concurrent joins of one participant are applied one
            after the other; the last one wins.
        """
        async with self._membership_lock:
            if self.closed:
                raise ParticipantClosedError(self.name)
            if self._room is room:
                return

            room._check_admission(self)
            previous = self._room
            if previous is not None and not await previous._evict(self):
                previous = None
            await room._admit(self)

        if previous is not None:
            await previous.broadcast(settings.ADMIN_NAME, f"{self.name} has left the room")
        await room.broadcast(settings.ADMIN_NAME, f"{self.name} has entered the room")

    async def leave(self, room: Room) -> None:
        """
        Detach from a room and terminate the consumption loop.

        Order of effects: removal from the room, clearing the room reference,
        loop termination, then a "has left" announcement to the remaining
        members. Once this returns the reaction function is never called
        again, even if a broadcast was racing with the leave.

        Leaving a room this participant is not in is a no-op, so calling
        leave twice is safe. A reaction function may leave its own room.
        Reactions of two participants may also make each other leave: the
        second of the two does not wait for the first one's loop, which is
        itself waiting on the second.
        """
        async with self._membership_lock:
            if not await room._evict(self):
                return
            self._quit.set()

        await self._stop()
        await room.broadcast(settings.ADMIN_NAME, f"{self.name} has left the room")

    # ------------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------------

    async def send(self, text: str) -> int:
        """
        Broadcast text to the current room on behalf of this participant.

        The sender is a member of its own room, so it receives its own message.

        Returns:
            Number of members the message was delivered to

        Raises:
            NotInRoomError: not attached to any room
        """
        room = self._room
        if room is None:
            raise NotInRoomError(self.name)
        return await room.broadcast(self.name, text)

    def set_reaction(self, reaction: Reaction) -> None:
        """
        Replace the function called for each received message.

        Plain functions and coroutine functions are both accepted. The loop
        reads the reaction once per message, so a message already being handled
        finishes with the function it started with.
        """
        self._reaction = reaction

    # ------------------------------------------------------------------------
    # Delivery (called by Room)
    # ------------------------------------------------------------------------

    async def _deliver(self, message: Message) -> bool:
        """Put a message in the mailbox according to the delivery policy."""
        if self.closed:
            return False

        try:
            self._inbox.put_nowait(message)
            self._enqueued += 1
            return True
        except asyncio.QueueFull:
            pass

        overflow = self.policy.overflow
        if overflow == "drop_newest":
            logger.warning(
                "Mailbox of %s full (%d), dropped message from %s",
                self.name, self.policy.mailbox_size, message.sender,
            )
            return False

        if overflow == "drop_oldest":
            dropped = self._inbox.get_nowait()
            self._removed += 1
            self._inbox.put_nowait(message)
            self._enqueued += 1
            self._notify_progress()
            logger.warning(
                "Mailbox of %s full (%d), dropped oldest message from %s",
                self.name, self.policy.mailbox_size, dropped.sender,
            )
            return True

        # "block": wait for space, or give up if the participant leaves meanwhile
        return await self._until_quit(self._put(message)) is not _QUIT

    async def _put(self, message: Message) -> None:
        await self._inbox.put(message)
        self._enqueued += 1

    @property
    def _watermark(self) -> int:
        """Mailbox position of the most recently enqueued message."""
        return self._enqueued

    def _settled(self, watermark: int) -> bool:
        if self._removed < watermark:
            return False
        return self._in_flight is None or self._in_flight > watermark

    async def _drained(self, watermark: int) -> None:
        """Wait until every message up to mailbox position watermark is handled."""
        if asyncio.current_task() is self._task:
            # Flushing from our own reaction would wait on ourselves
            return
        await self._until_quit(self._wait_settled(watermark))

    async def _wait_settled(self, watermark: int) -> None:
        while not self._settled(watermark):
            await self._progress.wait()

    def _notify_progress(self) -> None:
        self._progress.set()
        self._progress = asyncio.Event()

    # ------------------------------------------------------------------------
    # Consumption loop
    # ------------------------------------------------------------------------

    async def _until_quit(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """
        Await coro unless the termination signal arrives first.

        Returns coro's result, or _QUIT if termination won the race.
        """
        if self.closed:
            coro.close()
            return _QUIT

        work = asyncio.ensure_future(coro)
        quit_wait = asyncio.ensure_future(self._quit.wait())
        try:
            await asyncio.wait({work, quit_wait}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for fut in (work, quit_wait):
                if not fut.done():
                    fut.cancel()

        if work.done() and not work.cancelled():
            return work.result()
        return _QUIT

    async def _consume(self) -> None:
        logger.debug("Consumption loop of %s started", self.name)

        while not self.closed:
            message = await self._until_quit(self._inbox.get())
            if message is _QUIT or self.closed:
                break

            self._removed += 1
            self._in_flight = self._removed
            reaction = self._reaction
            try:
                await self._react(reaction, message)
            finally:
                self._in_flight = None
                self._notify_progress()

        logger.debug("Consumption loop of %s stopped", self.name)

    async def _react(self, reaction: Reaction, message: Message) -> None:
        # A failing reaction is this participant's problem, never the room's
        try:
            result = reaction(message)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            if asyncio.current_task().cancelling():
                raise
            logger.exception(
                "Reaction of %s was cancelled on message from %s", self.name, message.sender
            )
        except Exception:
            logger.exception(
                "Reaction of %s failed on message from %s", self.name, message.sender
            )

    def _on_loop_done(self, task: asyncio.Task) -> None:
        error = None if task.cancelled() else task.exception()
        if error is not None:
            logger.error("Consumption loop of %s crashed", self.name, exc_info=error)
        elif not self._quit.is_set():
            logger.warning("Consumption loop of %s was cancelled", self.name)
        # A dead loop reads nothing more: stop delivering to it and waiting on it
        self._quit.set()
        self._notify_progress()

    async def _stop(self) -> None:
        self._quit.set()
        current = asyncio.current_task()
        if current is self._task:
            # Leaving from our own reaction; the loop exits once it returns
            return

        # Don't wait on a loop that is (through other leaves) waiting on us
        waited = self._task
        while waited in _stop_waits:
            waited = _stop_waits[waited]
            if waited is current:
                return

        _stop_waits[current] = self._task
        try:
            await asyncio.wait({self._task})
        finally:
            del _stop_waits[current]
