# chatroom/models/models.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from chatroom.core.config import settings

OverflowPolicy = Literal["block", "drop_newest", "drop_oldest"]


class Message(BaseModel):
    """
    A chat message as delivered to one room member.

    Messages are immutable values produced by Room.broadcast. ``sender`` is
    serialized as ``"from"`` so dumps read like the wire format
    ``{"from": ..., "contents": ...}``.
    """

    model_config = ConfigDict(frozen=True)

    sender: str = Field(serialization_alias="from")
    room_id: str
    room_name: str
    contents: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def display_string(self) -> str:
        return f"{self.sender} > {self.contents}"

    def __str__(self) -> str:
        return self.display_string()


class DeliveryPolicy(BaseModel):
    """
    Mailbox capacity and what a broadcast does when a mailbox is full.

    mailbox_size == 0 means unbounded, in which case overflow never applies.
    """

    model_config = ConfigDict(frozen=True)

    mailbox_size: int = Field(default=0, ge=0)
    overflow: OverflowPolicy = "block"

    @classmethod
    def from_settings(cls) -> DeliveryPolicy:
        return cls(mailbox_size=settings.MAILBOX_SIZE, overflow=settings.OVERFLOW_POLICY)
