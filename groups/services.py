"""
Group administration.

GroupAdmin is the entry point for every group operation that spans several
core components. Authority rules live here: only the creator administers a
group, and the creator leaves a group only by deleting it.
"""

import logging
from typing import Iterable, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from conversations.exceptions import (
    CascadeStepFailed,
    ConversationError,
    CreatorMustDelete,
    NotAGroup,
    translate_storage_errors,
)
from conversations.locks import get_conversation, lock_conversation, require_group_creator
from conversations.members import MemberStore
from conversations.message_log import MessageLog
from conversations.registry import ConversationRegistry

from .models import GroupDeletion

logger = logging.getLogger(__name__)

_UNSET = object()


class GroupAdmin:
    # Order matters: each step assumes the previous ones are done
    CASCADE_STEPS = ("messages", "members", "conversation")

    @staticmethod
    def create_group(creator_id: str, name: str, member_ids: Iterable[str]) -> str:
        """Create a group and return its conversation id."""
        conversation = ConversationRegistry.create_group(creator_id, name, member_ids)
        return conversation.conversation_id

    @staticmethod
    def update_group(conversation_id: str, requester_id: str, name=None, avatar=_UNSET):
        """Rename and/or change the avatar of a group in one transaction."""
        with transaction.atomic():
            conversation = get_conversation(conversation_id)
            require_group_creator(conversation, requester_id)
            if name is not None:
                conversation = ConversationRegistry.rename(conversation_id, requester_id, name)
            if avatar is not _UNSET:
                conversation = ConversationRegistry.set_avatar(conversation_id, requester_id, avatar)
        return conversation

    @staticmethod
    def add_member(conversation_id: str, requester_id: str, new_user_id: str):
        conversation = get_conversation(conversation_id)
        require_group_creator(conversation, requester_id)
        return MemberStore.add_member(conversation_id, new_user_id)

    @staticmethod
    def remove_member(conversation_id: str, requester_id: str, target_user_id: str) -> None:
        conversation = get_conversation(conversation_id)
        require_group_creator(conversation, requester_id)
        if target_user_id == conversation.created_by:
            raise CreatorMustDelete(conversation_id=conversation_id)
        MemberStore.remove_member(conversation_id, target_user_id)

    @staticmethod
    def leave_group(conversation_id: str, user_id: str) -> None:
        conversation = get_conversation(conversation_id)
        if not conversation.is_group:
            raise NotAGroup(conversation_id=conversation_id)
        if user_id == conversation.created_by:
            raise CreatorMustDelete(conversation_id=conversation_id)
        MemberStore.remove_member(conversation_id, user_id)
        logger.info(f"{user_id} left group {conversation_id}")

    @staticmethod
    def delete_group(conversation_id: str, requester_id: str) -> GroupDeletion:
        """
        Delete a group with everything that references it.

        Steps run in ``CASCADE_STEPS`` order, each in its own transaction that
        also records its completion on the ``GroupDeletion`` row. When a step
        fails, ``CascadeStepFailed`` names it; calling this again resumes at
        that step instead of starting over. From the first call on, the
        conversation accepts no new messages or members.
        """
        deletion = GroupAdmin._begin_deletion(conversation_id, requester_id)
        steps = {
            "messages": lambda: MessageLog.purge(conversation_id),
            "members": lambda: MemberStore.purge_conversation(conversation_id),
            "conversation": lambda: ConversationRegistry.delete(conversation_id, requester_id),
        }

        for index in range(deletion.completed_steps, len(GroupAdmin.CASCADE_STEPS)):
            step = GroupAdmin.CASCADE_STEPS[index]
            try:
                with transaction.atomic():
                    steps[step]()
                    deletion.completed_steps = index + 1
                    deletion.failed_step = None
                    deletion.last_error = ""
                    update_fields = ["completed_steps", "failed_step", "last_error", "updated_at"]
                    if deletion.completed_steps == len(GroupAdmin.CASCADE_STEPS):
                        deletion.completed_at = timezone.now()
                        update_fields.append("completed_at")
                    deletion.save(update_fields=update_fields)
            except (DatabaseError, ConversationError) as e:
                logger.error(f"Deletion of {conversation_id} failed at step '{step}': {e}")
                GroupAdmin._record_failure(deletion, step, e)
                raise CascadeStepFailed(conversation_id, step) from e

            logger.info(f"Deletion of {conversation_id}: step '{step}' done")

        logger.info(f"Group {conversation_id} deleted by {requester_id}")
        return deletion

    @staticmethod
    @translate_storage_errors
    def _begin_deletion(conversation_id: str, requester_id: str) -> GroupDeletion:
        with transaction.atomic():
            conversation = lock_conversation(conversation_id, include_deleting=True)
            require_group_creator(conversation, requester_id)

            deletion, created = GroupDeletion.objects.select_for_update().get_or_create(
                conversation_id=conversation_id,
                defaults={"requested_by": requester_id},
            )
            deletion.attempts += 1
            deletion.save(update_fields=["attempts", "updated_at"])

            if not conversation.is_deleting:
                conversation.deletion_started_at = timezone.now()
                conversation.save(update_fields=["deletion_started_at", "updated_at"])

        if not created:
            logger.info(
                f"Resuming deletion of {conversation_id} after "
                f"{deletion.completed_steps} completed steps"
            )
        return deletion

    @staticmethod
    def _record_failure(deletion: GroupDeletion, step: str, error: Exception) -> None:
        try:
            GroupDeletion.objects.filter(pk=deletion.pk).update(
                failed_step=step, last_error=str(error)[:1000], updated_at=timezone.now()
            )
        except DatabaseError as e:
            logger.error(f"Could not record failed step for {deletion.conversation_id}: {e}")

    @staticmethod
    def deletion_status(conversation_id: str) -> Optional[GroupDeletion]:
        return GroupDeletion.objects.filter(conversation_id=conversation_id).first()
