from datetime import timedelta
from unittest.mock import MagicMock, patch

from django.db import IntegrityError
from django.test import TestCase, override_settings
from django.utils import timezone

from conversations.exceptions import (
    ConversationNotFound,
    DuplicateMembers,
    EmptyMemberSet,
    InfrastructureError,
    InvalidAttachment,
    InvalidGroupName,
    InvalidParticipants,
    NotAGroup,
    NotAuthorized,
)
from conversations.members import MemberStore
from conversations.models import Conversation, ConversationMember, ReadMarker
from conversations.registry import ConversationRegistry
from conversations.signals import conversation_updated


class CreateDirectTest(TestCase):
    def test_create_direct(self):
        conversation, created = ConversationRegistry.create_direct("user-1", "user-2")

        self.assertTrue(created)
        self.assertFalse(conversation.is_group)
        self.assertEqual(set(MemberStore.member_ids(conversation.conversation_id)), {"user-1", "user-2"})

    def test_direct_conversation_is_deduplicated_in_either_order(self):
        first, _ = ConversationRegistry.create_direct("user-1", "user-2")
        again, created_again = ConversationRegistry.create_direct("user-1", "user-2")
        swapped, created_swapped = ConversationRegistry.create_direct("user-2", "user-1")

        self.assertEqual(first.conversation_id, again.conversation_id)
        self.assertEqual(first.conversation_id, swapped.conversation_id)
        self.assertFalse(created_again)
        self.assertFalse(created_swapped)
        self.assertEqual(Conversation.objects.count(), 1)

    def test_direct_with_self_is_rejected(self):
        with self.assertRaises(InvalidParticipants):
            ConversationRegistry.create_direct("user-1", "user-1")
        with self.assertRaises(InvalidParticipants):
            ConversationRegistry.create_direct("user-1", "")

    def test_failed_member_insert_leaves_nothing_behind(self):
        with patch(
            "conversations.registry.MemberStore.insert_members",
            side_effect=IntegrityError("boom"),
        ):
            with self.assertRaises(InfrastructureError):
                ConversationRegistry.create_direct("user-1", "user-2")

        self.assertFalse(Conversation.objects.exists())


class CreateGroupTest(TestCase):
    def test_create_group(self):
        conversation = ConversationRegistry.create_group("user-1", "  Trip  ", ["user-2", "user-3"])

        self.assertTrue(conversation.is_group)
        self.assertEqual(conversation.name, "Trip")
        self.assertEqual(conversation.created_by, "user-1")
        self.assertEqual(
            MemberStore.member_ids(conversation.conversation_id), ["user-1", "user-2", "user-3"]
        )
        self.assertEqual(ReadMarker.objects.filter(conversation=conversation).count(), 3)

    def test_creator_listed_as_member_is_not_duplicated(self):
        conversation = ConversationRegistry.create_group("user-1", "Trip", ["user-1", "user-2"])
        self.assertEqual(MemberStore.member_ids(conversation.conversation_id), ["user-1", "user-2"])

    def test_group_name_is_required(self):
        for name in ["", "   ", None]:
            with self.assertRaises(InvalidGroupName):
                ConversationRegistry.create_group("user-1", name, ["user-2"])

    def test_group_name_length(self):
        with self.assertRaises(InvalidGroupName):
            ConversationRegistry.create_group("user-1", "x" * 256, ["user-2"])

    def test_duplicate_members_are_rejected(self):
        with self.assertRaises(DuplicateMembers) as ctx:
            ConversationRegistry.create_group("user-1", "Trip", ["user-2", "user-3", "user-2"])
        self.assertEqual(ctx.exception.context["duplicates"], ["user-2"])
        self.assertFalse(Conversation.objects.exists())

    def test_group_without_other_members_is_rejected(self):
        with self.assertRaises(EmptyMemberSet):
            ConversationRegistry.create_group("user-1", "Just me", [])
        with self.assertRaises(EmptyMemberSet):
            ConversationRegistry.create_group("user-1", "Just me", ["user-1"])

    @override_settings(HUDDLE_ALLOW_SOLO_GROUPS=True)
    def test_solo_group_when_allowed(self):
        conversation = ConversationRegistry.create_group("user-1", "Notes", [])
        self.assertEqual(MemberStore.member_ids(conversation.conversation_id), ["user-1"])

    def test_partial_member_insert_rolls_back_the_group(self):
        """No group is left without its members when member rows cannot be written"""
        with patch(
            "conversations.registry.MemberStore.insert_members",
            side_effect=IntegrityError("member insert failed"),
        ):
            with self.assertRaises(InfrastructureError):
                ConversationRegistry.create_group("user-1", "Trip", ["user-2"])

        self.assertFalse(Conversation.objects.exists())
        self.assertFalse(ConversationMember.objects.exists())


class GroupMetadataTest(TestCase):
    def setUp(self):
        self.group = ConversationRegistry.create_group("user-1", "Trip", ["user-2"])
        self.direct, _ = ConversationRegistry.create_direct("user-1", "user-2")

    def test_creator_can_rename(self):
        with self.captureOnCommitCallbacks(execute=True):
            ConversationRegistry.rename(self.group.conversation_id, "user-1", "Road trip")

        self.group.refresh_from_db()
        self.assertEqual(self.group.name, "Road trip")

    def test_rename_emits_update_after_commit(self):
        receiver = MagicMock()
        conversation_updated.connect(receiver, weak=False)
        self.addCleanup(conversation_updated.disconnect, receiver)

        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            ConversationRegistry.rename(self.group.conversation_id, "user-1", "Road trip")
        receiver.assert_not_called()

        for callback in callbacks:
            callback()
        receiver.assert_called_once()
        self.assertEqual(receiver.call_args.kwargs["fields"], ["name"])

    def test_only_creator_can_rename(self):
        with self.assertRaises(NotAuthorized):
            ConversationRegistry.rename(self.group.conversation_id, "user-2", "Mine now")

        self.group.refresh_from_db()
        self.assertEqual(self.group.name, "Trip")

    def test_rename_direct_conversation(self):
        with self.assertRaises(NotAGroup):
            ConversationRegistry.rename(self.direct.conversation_id, "user-1", "Us")

    def test_rename_to_blank(self):
        with self.assertRaises(InvalidGroupName):
            ConversationRegistry.rename(self.group.conversation_id, "user-1", "  ")

    def test_set_avatar(self):
        ConversationRegistry.set_avatar(self.group.conversation_id, "user-1", "avatars/trip.png")
        self.group.refresh_from_db()
        self.assertEqual(self.group.avatar_url, "avatars/trip.png")

        ConversationRegistry.set_avatar(self.group.conversation_id, "user-1", None)
        self.group.refresh_from_db()
        self.assertIsNone(self.group.avatar_url)

    def test_set_avatar_authority(self):
        with self.assertRaises(NotAuthorized):
            ConversationRegistry.set_avatar(self.group.conversation_id, "user-2", "avatars/x.png")
        with self.assertRaises(NotAGroup):
            ConversationRegistry.set_avatar(self.direct.conversation_id, "user-1", "avatars/x.png")

    def test_set_avatar_rejects_oversized_reference(self):
        with self.assertRaises(InvalidAttachment):
            ConversationRegistry.set_avatar(self.group.conversation_id, "user-1", "a" * 501)

    def test_delete_direct_conversation_is_refused(self):
        with self.assertRaises(NotAGroup):
            ConversationRegistry.delete(self.direct.conversation_id, "user-1")
        self.assertTrue(Conversation.objects.filter(pk=self.direct.pk).exists())

    def test_delete_by_non_creator_is_refused(self):
        with self.assertRaises(NotAuthorized):
            ConversationRegistry.delete(self.group.conversation_id, "user-2")


class LookupTest(TestCase):
    def test_get_unknown_conversation(self):
        with self.assertRaises(ConversationNotFound):
            ConversationRegistry.get("conv_missing")

    def test_touch(self):
        group = ConversationRegistry.create_group("user-1", "Trip", ["user-2"])
        at = timezone.now()

        ConversationRegistry.touch(group.conversation_id, at=at)

        group.refresh_from_db()
        self.assertEqual(group.last_message_at, at)

    def test_touch_unknown_conversation(self):
        with self.assertRaises(ConversationNotFound):
            ConversationRegistry.touch("conv_missing")

    def test_list_for_user_orders_by_activity(self):
        quiet = ConversationRegistry.create_group("user-1", "Quiet", ["user-2"])
        busy = ConversationRegistry.create_group("user-1", "Busy", ["user-3"])
        older = ConversationRegistry.create_group("user-1", "Older", ["user-3"])
        ConversationRegistry.touch(older.conversation_id, at=timezone.now() - timedelta(days=1))
        ConversationRegistry.touch(busy.conversation_id)
        ConversationRegistry.create_group("user-2", "Not mine", ["user-3"])

        ids = [c.conversation_id for c in ConversationRegistry.list_for_user("user-1")]

        self.assertEqual(ids, [busy.conversation_id, older.conversation_id, quiet.conversation_id])

    def test_list_for_user_skips_conversations_being_deleted(self):
        group = ConversationRegistry.create_group("user-1", "Trip", ["user-2"])
        Conversation.objects.filter(pk=group.pk).update(deletion_started_at=timezone.now())

        self.assertEqual(list(ConversationRegistry.list_for_user("user-1")), [])
        with self.assertRaises(ConversationNotFound):
            ConversationRegistry.get(group.conversation_id)
