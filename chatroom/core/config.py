# chatroom/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - CHAT_ADMIN_NAME sender name used for join/leave announcements
        - CHAT_MAILBOX_SIZE per-participant mailbox capacity, 0 means unbounded
        - CHAT_OVERFLOW_POLICY what a broadcast does when a mailbox is full:
          "block", "drop_newest" or "drop_oldest"
        - LOG_LEVEL root logger level
    """

    # Load environment variables from the .env file
    load_dotenv()

    ADMIN_NAME: str = os.getenv("CHAT_ADMIN_NAME", "admin")

    MAILBOX_SIZE: int = int(os.getenv("CHAT_MAILBOX_SIZE", "0"))
    OVERFLOW_POLICY: Literal["block", "drop_newest", "drop_oldest"] = (
        os.getenv("CHAT_OVERFLOW_POLICY", "block")
    )

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
