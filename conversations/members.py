import logging
from typing import List

from django.db import transaction

from utils.cache_service import cache_service

from .exceptions import AlreadyMember, NotAMember, translate_storage_errors
from .locks import get_conversation, lock_conversation
from .models import (
    ConversationMember,
    ConversationMessage,
    FavoriteConversation,
    ReadMarker,
)
from .signals import member_added, member_removed, send_on_commit

logger = logging.getLogger(__name__)


class MemberStore:
    """
    Owns conversation membership rows.

    A member row is the only thing that grants access to a conversation;
    removing it also drops the user's read marker and favorite mark for that
    conversation.
    """

    @staticmethod
    def insert_members(conversation, user_ids) -> List[ConversationMember]:
        """
        Create member rows and their read markers inside the caller's transaction.

        Markers start at the newest message present at join time.
        """
        latest = (
            ConversationMessage.objects.filter(conversation=conversation)
            .order_by("-created_at", "-id")
            .first()
        )
        members = [
            ConversationMember.objects.create(conversation=conversation, user_id=user_id)
            for user_id in user_ids
        ]
        ReadMarker.objects.bulk_create(
            [
                ReadMarker(
                    conversation=conversation,
                    user_id=user_id,
                    last_read_message=latest,
                    last_read_at=latest.created_at if latest else None,
                )
                for user_id in user_ids
            ]
        )
        return members

    @staticmethod
    @translate_storage_errors
    def add_member(conversation_id: str, user_id: str) -> ConversationMember:
        with transaction.atomic():
            conversation = lock_conversation(conversation_id)
            if ConversationMember.objects.filter(
                conversation=conversation, user_id=user_id
            ).exists():
                raise AlreadyMember(conversation_id=conversation_id, user_id=user_id)

            member = MemberStore.insert_members(conversation, [user_id])[0]
            cache_service.invalidate_conversation(conversation_id)
            send_on_commit(
                member_added,
                sender=MemberStore,
                conversation_id=conversation_id,
                user_id=user_id,
            )

        logger.info(f"Added {user_id} to conversation {conversation_id}")
        return member

    @staticmethod
    @translate_storage_errors
    def remove_member(conversation_id: str, user_id: str) -> None:
        with transaction.atomic():
            conversation = lock_conversation(conversation_id)
            deleted, _ = ConversationMember.objects.filter(
                conversation=conversation, user_id=user_id
            ).delete()
            if not deleted:
                raise NotAMember(conversation_id=conversation_id, user_id=user_id)

            ReadMarker.objects.filter(conversation=conversation, user_id=user_id).delete()
            FavoriteConversation.objects.filter(
                conversation=conversation, user_id=user_id
            ).delete()
            cache_service.invalidate_conversation(conversation_id)
            send_on_commit(
                member_removed,
                sender=MemberStore,
                conversation_id=conversation_id,
                user_id=user_id,
            )

        logger.info(f"Removed {user_id} from conversation {conversation_id}")

    @staticmethod
    def list_members(conversation_id: str) -> List[ConversationMember]:
        """Members in join order; an unknown conversation simply has none."""
        return list(
            ConversationMember.objects.filter(
                conversation__conversation_id=conversation_id
            ).order_by("joined_at", "id")
        )

    @staticmethod
    def member_ids(conversation_id: str) -> List[str]:
        return [member.user_id for member in MemberStore.list_members(conversation_id)]

    @staticmethod
    def is_member(conversation_id: str, user_id: str) -> bool:
        if not user_id:
            return False
        return ConversationMember.objects.filter(
            conversation__conversation_id=conversation_id, user_id=user_id
        ).exists()

    @staticmethod
    def conversation_ids_for_user(user_id: str) -> List[str]:
        return list(
            ConversationMember.objects.filter(
                user_id=user_id, conversation__deletion_started_at__isnull=True
            ).values_list("conversation__conversation_id", flat=True)
        )

    @staticmethod
    def purge_conversation(conversation_id: str) -> int:
        """
        Delete every member, read marker and favorite of a conversation.

        Safe to repeat; used by the group cascade delete.
        """
        with transaction.atomic():
            conversation = lock_conversation(conversation_id, include_deleting=True)
            ReadMarker.objects.filter(conversation=conversation).delete()
            FavoriteConversation.objects.filter(conversation=conversation).delete()
            deleted, _ = ConversationMember.objects.filter(
                conversation=conversation
            ).delete()
            cache_service.invalidate_conversation(conversation_id)

        logger.info(f"Purged {deleted} members from conversation {conversation_id}")
        return deleted


def get_member_conversation(conversation_id: str, user_id: str):
    """Fetch a conversation the user belongs to, or raise."""
    conversation = get_conversation(conversation_id)
    if not MemberStore.is_member(conversation_id, user_id):
        raise NotAMember(conversation_id=conversation_id, user_id=user_id)
    return conversation
