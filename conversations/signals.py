"""
Lifecycle events of the conversation core.

They are sent once the originating transaction has committed, so receivers
(realtime fan-out, cache cleanup) only ever see durable state.
"""

import logging

from django.db import transaction
from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# sender is the service class; kwargs listed per signal
message_appended = Signal()  # message
conversation_updated = Signal()  # conversation, fields
member_added = Signal()  # conversation_id, user_id
member_removed = Signal()  # conversation_id, user_id
read_marker_advanced = Signal()  # conversation_id, user_id, message_id
conversation_deleted = Signal()  # conversation_id


def send_on_commit(signal, sender, **kwargs):
    """Send ``signal`` after the current transaction commits."""

    def _send():
        for handler, response in signal.send_robust(sender=sender, **kwargs):
            if isinstance(response, Exception):
                logger.error(f"Receiver {handler.__qualname__} failed: {response}")

    transaction.on_commit(_send)


@receiver(conversation_deleted)
def drop_deleted_conversation_state(sender, conversation_id, **kwargs):
    """
    Clear per-user state left behind by a deleted conversation.

    The cascade already removed the rows; this clears cached unread counts and
    any favorite marks that raced the delete.
    """
    from conversations.models import FavoriteConversation
    from utils.cache_service import cache_service

    cache_service.invalidate_conversation(conversation_id)
    FavoriteConversation.objects.filter(
        conversation__conversation_id=conversation_id
    ).delete()


@receiver(member_removed)
def drop_removed_member_cache(sender, conversation_id, user_id, **kwargs):
    from utils.cache_service import cache_service

    cache_service.invalidate_conversation(conversation_id)
