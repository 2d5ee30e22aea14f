from django.db import IntegrityError, transaction
from django.test import TestCase

from conversations.models import (
    Conversation,
    ConversationMember,
    ConversationMessage,
    ReadMarker,
    direct_pair_key,
    generate_conversation_id,
)


class ConversationModelTest(TestCase):
    def setUp(self):
        self.conversation = Conversation.objects.create(
            is_group=False,
            created_by="user-1",
            direct_key=direct_pair_key("user-1", "user-2"),
        )

    def test_conversation_id_is_generated(self):
        """Conversation ids are opaque and unique"""
        self.assertTrue(self.conversation.conversation_id.startswith("conv_"))
        self.assertNotEqual(generate_conversation_id(), generate_conversation_id())

    def test_direct_pair_key_is_order_independent(self):
        self.assertEqual(direct_pair_key("b", "a"), direct_pair_key("a", "b"))
        self.assertEqual(direct_pair_key("a", "b"), "a:b")

    def test_direct_key_is_unique(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Conversation.objects.create(
                    created_by="user-2", direct_key=direct_pair_key("user-2", "user-1")
                )

    def test_counterpart_id(self):
        self.assertEqual(self.conversation.counterpart_id("user-1"), "user-2")
        self.assertEqual(self.conversation.counterpart_id("user-2"), "user-1")

        group = Conversation.objects.create(is_group=True, name="Trip", created_by="user-1")
        self.assertIsNone(group.counterpart_id("user-1"))

    def test_is_deleting(self):
        self.assertFalse(self.conversation.is_deleting)

    def test_member_is_unique_per_conversation(self):
        ConversationMember.objects.create(conversation=self.conversation, user_id="user-1")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ConversationMember.objects.create(conversation=self.conversation, user_id="user-1")


class ConversationMessageModelTest(TestCase):
    def setUp(self):
        self.conversation = Conversation.objects.create(
            is_group=True, name="Trip", created_by="user-1"
        )

    def test_message_needs_content_or_attachment(self):
        """The database refuses a message with neither content nor attachment"""
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ConversationMessage.objects.create(
                    conversation=self.conversation, sender_id="user-1", content=""
                )

    def test_attachment_only_message_is_allowed(self):
        message = ConversationMessage.objects.create(
            conversation=self.conversation,
            sender_id="user-1",
            attachment_url="uploads/photo.png",
            attachment_type="image",
        )
        self.assertEqual(message.content, "")

    def test_default_ordering_is_created_at_then_id(self):
        first = ConversationMessage.objects.create(
            conversation=self.conversation, sender_id="user-1", content="one"
        )
        second = ConversationMessage.objects.create(
            conversation=self.conversation,
            sender_id="user-2",
            content="two",
            created_at=first.created_at,
        )
        self.assertEqual(list(ConversationMessage.objects.all()), [first, second])
        self.assertLess(first.ordering_key, second.ordering_key)

    def test_read_marker_without_message_has_no_ordering_key(self):
        marker = ReadMarker.objects.create(conversation=self.conversation, user_id="user-1")
        self.assertIsNone(marker.ordering_key)
