# chatroom/main.py

from __future__ import annotations

import asyncio

from chatroom.core import state
from chatroom.core.logging import setup_logging, get_logger
from chatroom.models.models import Message
from chatroom.services.participant import Participant

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def print_message(message: Message) -> None:
    print(message)


async def main() -> None:
    logger.info("🚀 Demo starting")

    room = state.room_manager.create_room("test")
    chatters = [Participant(name) for name in ("justin", "carl", "connor")]

    for chatter in chatters:
        chatter.set_reaction(print_message)
        await room.join(chatter)

    for chatter in chatters:
        await chatter.send(f"testing from {chatter.name}")

    await state.room_manager.delete_room(room.id)
    logger.info("Demo finished")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
