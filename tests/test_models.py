"""
Unit tests for the message and delivery policy value types.
"""

import unittest
from unittest.mock import patch

from pydantic import ValidationError

from chatroom.core.config import settings
from chatroom.models.models import DeliveryPolicy, Message


def make_message(sender="justin", contents="hi"):
    return Message(sender=sender, room_id="room-1", room_name="test", contents=contents)


class TestMessage(unittest.TestCase):
    """Test cases for Message."""

    def test_display_string(self):
        message = make_message()
        self.assertEqual(message.display_string(), "justin > hi")
        self.assertEqual(str(message), "justin > hi")

    def test_message_is_immutable(self):
        message = make_message()
        with self.assertRaises(ValidationError):
            message.contents = "changed"

    def test_sender_serialized_as_from(self):
        data = make_message().model_dump(by_alias=True)
        self.assertEqual(data["from"], "justin")
        self.assertNotIn("sender", data)
        self.assertEqual(data["room_name"], "test")

    def test_equal_fields_equal_messages(self):
        first = make_message()
        second = Message(**first.model_dump())
        self.assertEqual(first, second)


class TestDeliveryPolicy(unittest.TestCase):
    """Test cases for DeliveryPolicy validation and defaults."""

    def test_defaults_to_unbounded_block(self):
        policy = DeliveryPolicy()
        self.assertEqual(policy.mailbox_size, 0)
        self.assertEqual(policy.overflow, "block")

    def test_rejects_negative_size(self):
        with self.assertRaises(ValidationError):
            DeliveryPolicy(mailbox_size=-1)

    def test_rejects_unknown_overflow(self):
        with self.assertRaises(ValidationError):
            DeliveryPolicy(mailbox_size=1, overflow="spill")

    def test_from_settings(self):
        with patch.object(settings, "MAILBOX_SIZE", 8), \
                patch.object(settings, "OVERFLOW_POLICY", "drop_oldest"):
            policy = DeliveryPolicy.from_settings()
        self.assertEqual(policy.mailbox_size, 8)
        self.assertEqual(policy.overflow, "drop_oldest")


if __name__ == "__main__":
    unittest.main()
