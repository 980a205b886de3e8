"""
Unit tests for bounded mailboxes and their overflow policies.

Each test parks the receiver inside its reaction (waiting on a gate) so the
mailbox fills up deterministically.
"""

import asyncio
import unittest

from chatroom.models.models import DeliveryPolicy
from chatroom.services.participant import Participant
from chatroom.services.room import Room


class GatedReceiver:
    """Reaction that records contents and then waits until the gate opens."""

    def __init__(self):
        self.seen = []
        self.gate = asyncio.Event()
        self.started = asyncio.Event()

    async def __call__(self, message):
        self.seen.append(message.contents)
        self.started.set()
        await self.gate.wait()


class TestDeliveryPolicy(unittest.IsolatedAsyncioTestCase):
    """Test cases for mailbox overflow handling."""

    async def asyncSetUp(self):
        self.room = Room("test")
        self.sender = Participant("justin")
        await self.sender.join(self.room)

    async def park(self, overflow):
        receiver = GatedReceiver()
        carl = Participant("carl", DeliveryPolicy(mailbox_size=1, overflow=overflow))
        carl.set_reaction(receiver)
        await carl.join(self.room)
        # The loop is now holding the entry announcement, the mailbox is empty
        await asyncio.wait_for(receiver.started.wait(), timeout=1)
        return carl, receiver

    async def test_drop_newest(self):
        carl, receiver = await self.park("drop_newest")

        self.assertEqual(await self.sender.send("kept"), 2)
        with self.assertLogs("chatroom.services.participant", level="WARNING") as logs:
            self.assertEqual(await self.sender.send("dropped"), 1)
        self.assertIn("Mailbox of carl full", logs.output[0])

        receiver.gate.set()
        await self.room.flush()
        self.assertEqual(receiver.seen, ["carl has entered the room", "kept"])

    async def test_drop_oldest(self):
        carl, receiver = await self.park("drop_oldest")

        await self.sender.send("stale")
        with self.assertLogs("chatroom.services.participant", level="WARNING"):
            self.assertEqual(await self.sender.send("fresh"), 2)

        receiver.gate.set()
        await self.room.flush()
        self.assertEqual(receiver.seen, ["carl has entered the room", "fresh"])

    async def test_block_waits_for_space(self):
        carl, receiver = await self.park("block")

        await self.sender.send("first")
        blocked = asyncio.create_task(self.sender.send("second"))
        await asyncio.sleep(0.01)
        self.assertFalse(blocked.done())

        receiver.gate.set()
        self.assertEqual(await asyncio.wait_for(blocked, timeout=1), 2)
        await self.room.flush()
        self.assertEqual(receiver.seen, ["carl has entered the room", "first", "second"])

    async def test_block_released_when_member_leaves(self):
        carl, receiver = await self.park("block")

        await self.sender.send("first")
        blocked = asyncio.create_task(self.sender.send("second"))
        await asyncio.sleep(0.01)
        self.assertFalse(blocked.done())

        leaving = asyncio.create_task(carl.leave(self.room))
        # The sender is released as soon as carl starts leaving
        self.assertEqual(await asyncio.wait_for(blocked, timeout=1), 1)

        receiver.gate.set()
        await asyncio.wait_for(leaving, timeout=1)
        self.assertTrue(carl.closed)
        self.assertNotIn("second", receiver.seen)
        self.assertEqual(self.room.chatters(), ["justin"])


if __name__ == "__main__":
    unittest.main()
