"""
Conversation lookups shared by the core services.

Every mutating operation locks the conversation row for the duration of its
transaction, which serialises writers per conversation id without any
cross-conversation lock. ``lock_conversation`` must run inside
``transaction.atomic()``.
"""

from .exceptions import ConversationNotFound, NotAGroup, NotAuthorized
from .models import Conversation


def _fetch(queryset, conversation_id, include_deleting):
    try:
        conversation = queryset.get(conversation_id=conversation_id)
    except Conversation.DoesNotExist:
        raise ConversationNotFound(conversation_id=conversation_id)
    if conversation.is_deleting and not include_deleting:
        raise ConversationNotFound(conversation_id=conversation_id)
    return conversation


def get_conversation(conversation_id, include_deleting=False):
    return _fetch(Conversation.objects.all(), conversation_id, include_deleting)


def lock_conversation(conversation_id, include_deleting=False):
    return _fetch(
        Conversation.objects.select_for_update(), conversation_id, include_deleting
    )


def require_group_creator(conversation, requester_id):
    """Group administration is reserved to the creator of a group."""
    if not conversation.is_group:
        raise NotAGroup(conversation_id=conversation.conversation_id)
    if requester_id != conversation.created_by:
        raise NotAuthorized(conversation_id=conversation.conversation_id)
