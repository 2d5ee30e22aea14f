import logging
from collections import Counter
from typing import Iterable, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import (
    ConversationNotFound,
    DuplicateMembers,
    EmptyMemberSet,
    InvalidAttachment,
    InvalidGroupName,
    InvalidParticipants,
    translate_storage_errors,
)
from .locks import get_conversation, lock_conversation, require_group_creator
from .members import MemberStore
from .models import Conversation, direct_pair_key
from .signals import (
    conversation_deleted,
    conversation_updated,
    send_on_commit,
)

logger = logging.getLogger(__name__)

GROUP_NAME_MAX_LENGTH = Conversation._meta.get_field("name").max_length
AVATAR_REFERENCE_MAX_LENGTH = Conversation._meta.get_field("avatar_url").max_length


def clean_group_name(name) -> str:
    if not isinstance(name, str):
        raise InvalidGroupName()
    name = name.strip()
    if not name:
        raise InvalidGroupName()
    if len(name) > GROUP_NAME_MAX_LENGTH:
        raise InvalidGroupName(f"Group name must be at most {GROUP_NAME_MAX_LENGTH} characters")
    return name


class ConversationRegistry:
    """Conversation metadata and lifecycle: create, rename, avatar, delete."""

    @staticmethod
    def get(conversation_id: str) -> Conversation:
        return get_conversation(conversation_id)

    @staticmethod
    def lock(conversation_id: str, include_deleting: bool = False) -> Conversation:
        return lock_conversation(conversation_id, include_deleting=include_deleting)

    @staticmethod
    @translate_storage_errors
    def create_direct(user_a: str, user_b: str) -> Tuple[Conversation, bool]:
        """
        Return the direct conversation between two users, creating it if needed.

        Direct conversations are unique per unordered pair, so calling this with
        the arguments swapped returns the same conversation.
        """
        if not user_a or not user_b or user_a == user_b:
            raise InvalidParticipants()

        key = direct_pair_key(user_a, user_b)
        existing = Conversation.objects.filter(direct_key=key).first()
        if existing:
            return existing, False

        try:
            with transaction.atomic():
                conversation = Conversation.objects.create(
                    is_group=False, created_by=user_a, direct_key=key
                )
                MemberStore.insert_members(conversation, [user_a, user_b])
        except IntegrityError:
            # Lost a creation race for the same pair
            existing = Conversation.objects.filter(direct_key=key).first()
            if existing is None:
                raise
            return existing, False

        logger.info(f"Created direct conversation {conversation.conversation_id}")
        return conversation, True

    @staticmethod
    @translate_storage_errors
    def create_group(creator_id: str, name: str, member_ids: Iterable[str]) -> Conversation:
        """
        Create a group owned by ``creator_id`` with ``creator ∪ member_ids`` as members.

        The conversation row and all member rows are written in one transaction.
        """
        name = clean_group_name(name)
        member_ids = [str(member_id) for member_id in (member_ids or [])]

        duplicates = sorted(m for m, n in Counter(member_ids).items() if n > 1)
        if duplicates:
            raise DuplicateMembers(duplicates=duplicates)

        others = [m for m in member_ids if m and m != creator_id]
        if not others and not settings.HUDDLE_ALLOW_SOLO_GROUPS:
            raise EmptyMemberSet()

        with transaction.atomic():
            conversation = Conversation.objects.create(
                is_group=True, name=name, created_by=creator_id
            )
            MemberStore.insert_members(conversation, [creator_id] + others)

        logger.info(
            f"Group {conversation.conversation_id} created by {creator_id} "
            f"with {len(others) + 1} members"
        )
        return conversation

    @staticmethod
    @translate_storage_errors
    def rename(conversation_id: str, requester_id: str, new_name: str) -> Conversation:
        with transaction.atomic():
            conversation = lock_conversation(conversation_id)
            require_group_creator(conversation, requester_id)
            conversation.name = clean_group_name(new_name)
            conversation.save(update_fields=["name", "updated_at"])
            send_on_commit(
                conversation_updated,
                sender=ConversationRegistry,
                conversation=conversation,
                fields=["name"],
            )
        return conversation

    @staticmethod
    @translate_storage_errors
    def set_avatar(
        conversation_id: str, requester_id: str, reference: Optional[str]
    ) -> Conversation:
        """Point the group avatar at an opaque storage reference (``None`` clears it)."""
        if reference is not None:
            if not isinstance(reference, str) or len(reference) > AVATAR_REFERENCE_MAX_LENGTH:
                raise InvalidAttachment("Avatar reference is invalid")
            reference = reference.strip() or None

        with transaction.atomic():
            conversation = lock_conversation(conversation_id)
            require_group_creator(conversation, requester_id)
            conversation.avatar_url = reference
            conversation.save(update_fields=["avatar_url", "updated_at"])
            send_on_commit(
                conversation_updated,
                sender=ConversationRegistry,
                conversation=conversation,
                fields=["avatar_url"],
            )
        return conversation

    @staticmethod
    @translate_storage_errors
    def delete(conversation_id: str, requester_id: str) -> None:
        """
        Remove the conversation row itself.

        Only the creator may delete, and only groups can be deleted. This is
        the last step of ``GroupAdmin.delete_group``; rows still referencing
        the conversation go with it.
        """
        with transaction.atomic():
            conversation = lock_conversation(conversation_id, include_deleting=True)
            require_group_creator(conversation, requester_id)
            conversation.delete()
            send_on_commit(
                conversation_deleted,
                sender=ConversationRegistry,
                conversation_id=conversation_id,
            )

        logger.info(f"Conversation {conversation_id} deleted by {requester_id}")

    @staticmethod
    def touch(conversation_id: str, at=None) -> None:
        updated = Conversation.objects.filter(conversation_id=conversation_id).update(
            last_message_at=at or timezone.now(), updated_at=timezone.now()
        )
        if not updated:
            raise ConversationNotFound(conversation_id=conversation_id)

    @staticmethod
    def list_for_user(user_id: str):
        """Conversations the user belongs to, most recently active first."""
        return (
            Conversation.objects.filter(
                members__user_id=user_id, deletion_started_at__isnull=True
            )
            .order_by(F("last_message_at").desc(nulls_last=True), "-created_at")
        )
