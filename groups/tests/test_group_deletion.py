from unittest.mock import patch

from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase

from conversations.exceptions import (
    CascadeStepFailed,
    ConversationNotFound,
    CreatorMustDelete,
    NotAGroup,
    NotAuthorized,
)
from conversations.favorites import FavoritesIndex
from conversations.members import MemberStore
from conversations.message_log import MessageLog
from conversations.models import (
    Conversation,
    ConversationMember,
    ConversationMessage,
    FavoriteConversation,
    ReadMarker,
)
from conversations.registry import ConversationRegistry
from conversations.unread import UnreadTracker
from groups.models import GroupDeletion
from groups.services import GroupAdmin


class GroupDeletionTestCase(TestCase):
    def setUp(self):
        """A group with history, read state and favorites"""
        cache.clear()
        self.creator_id = "user-1"
        self.conversation_id = GroupAdmin.create_group(self.creator_id, "Trip", ["user-2", "user-3"])
        self.conversation = Conversation.objects.get(conversation_id=self.conversation_id)

        for sender in ["user-1", "user-2", "user-3"]:
            MessageLog.append(self.conversation_id, sender, f"hello from {sender}")
        UnreadTracker.mark_read(self.conversation_id, "user-2")
        FavoritesIndex.toggle("user-2", self.conversation_id)
        FavoritesIndex.toggle("user-3", self.conversation_id)

    def assertNothingReferencesConversation(self):
        conversation_filter = {"conversation__conversation_id": self.conversation_id}
        self.assertFalse(ConversationMessage.objects.filter(**conversation_filter).exists())
        self.assertFalse(ConversationMember.objects.filter(**conversation_filter).exists())
        self.assertFalse(ReadMarker.objects.filter(**conversation_filter).exists())
        self.assertFalse(FavoriteConversation.objects.filter(**conversation_filter).exists())
        self.assertFalse(Conversation.objects.filter(conversation_id=self.conversation_id).exists())

    def test_creator_deletes_group(self):
        with self.captureOnCommitCallbacks(execute=True):
            deletion = GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        self.assertTrue(deletion.is_complete)
        self.assertEqual(deletion.completed_steps, len(GroupAdmin.CASCADE_STEPS))
        self.assertEqual(deletion.attempts, 1)
        self.assertNothingReferencesConversation()

    def test_after_deletion(self):
        """The creator cannot leave; after deleting, the group reads as empty and refuses writes"""
        with self.assertRaises(CreatorMustDelete):
            GroupAdmin.remove_member(self.conversation_id, self.creator_id, self.creator_id)

        GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        self.assertEqual(MemberStore.list_members(self.conversation_id), [])
        with self.assertRaises(ConversationNotFound):
            MessageLog.append(self.conversation_id, "user-3", "anyone?")
        with self.assertRaises(ConversationNotFound):
            GroupAdmin.add_member(self.conversation_id, self.creator_id, "user-4")
        with self.assertRaises(ConversationNotFound):
            GroupAdmin.delete_group(self.conversation_id, self.creator_id)

    def test_direct_conversation_cannot_be_deleted(self):
        direct, _ = ConversationRegistry.create_direct("user-1", "user-2")

        with self.assertRaises(NotAGroup):
            GroupAdmin.delete_group(direct.conversation_id, "user-1")
        self.assertFalse(GroupDeletion.objects.filter(conversation_id=direct.conversation_id).exists())

    def test_failed_step_is_reported_and_resumed(self):
        with patch(
            "groups.services.MemberStore.purge_conversation",
            side_effect=DatabaseError("connection lost"),
        ):
            with self.assertRaises(CascadeStepFailed) as ctx:
                GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        self.assertEqual(ctx.exception.step, "members")
        self.assertEqual(ctx.exception.conversation_id, self.conversation_id)

        # Intermediate state: messages gone, members and conversation still there
        self.assertFalse(ConversationMessage.objects.filter(conversation=self.conversation).exists())
        self.assertTrue(ConversationMember.objects.filter(conversation=self.conversation).exists())
        self.conversation.refresh_from_db()
        self.assertTrue(self.conversation.is_deleting)

        deletion = GroupDeletion.objects.get(conversation_id=self.conversation_id)
        self.assertEqual(deletion.completed_steps, 1)
        self.assertEqual(deletion.failed_step, "members")
        self.assertIn("connection lost", deletion.last_error)

        # The half-deleted group takes no new writes
        with self.assertRaises(ConversationNotFound):
            MessageLog.append(self.conversation_id, "user-2", "still here?")

        with patch("groups.services.MessageLog.purge") as purge_messages:
            deletion = GroupAdmin.delete_group(self.conversation_id, self.creator_id)
        purge_messages.assert_not_called()

        self.assertTrue(deletion.is_complete)
        self.assertIsNone(deletion.failed_step)
        self.assertEqual(deletion.attempts, 2)
        self.assertNothingReferencesConversation()

    def test_failure_on_last_step_keeps_conversation_row(self):
        with patch(
            "groups.services.ConversationRegistry.delete",
            side_effect=DatabaseError("timeout"),
        ):
            with self.assertRaises(CascadeStepFailed) as ctx:
                GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        self.assertEqual(ctx.exception.step, "conversation")
        self.assertTrue(Conversation.objects.filter(conversation_id=self.conversation_id).exists())
        self.assertEqual(MemberStore.list_members(self.conversation_id), [])
        self.assertEqual(GroupDeletion.objects.get(conversation_id=self.conversation_id).completed_steps, 2)

        GroupAdmin.delete_group(self.conversation_id, self.creator_id)
        self.assertNothingReferencesConversation()

    def test_resume_still_requires_creator(self):
        with patch(
            "groups.services.MessageLog.purge",
            side_effect=DatabaseError("boom"),
        ):
            with self.assertRaises(CascadeStepFailed):
                GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        with self.assertRaises(NotAuthorized):
            GroupAdmin.delete_group(self.conversation_id, "user-2")
        self.assertTrue(ConversationMessage.objects.filter(conversation=self.conversation).exists())

    def test_members_cannot_be_added_once_deletion_started(self):
        with patch(
            "groups.services.MessageLog.purge",
            side_effect=DatabaseError("boom"),
        ):
            with self.assertRaises(CascadeStepFailed):
                GroupAdmin.delete_group(self.conversation_id, self.creator_id)

        with self.assertRaises(ConversationNotFound):
            GroupAdmin.add_member(self.conversation_id, self.creator_id, "user-4")
        with self.assertRaises(ConversationNotFound):
            MemberStore.add_member(self.conversation_id, "user-2")
