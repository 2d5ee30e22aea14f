"""Forward conversation lifecycle events to websocket subscribers."""

from django.dispatch import receiver

from conversations.serializers import ConversationMessageSerializer
from conversations.signals import (
    conversation_deleted,
    conversation_updated,
    member_added,
    member_removed,
    message_appended,
    read_marker_advanced,
)

from .fanout import publish_conversation_event


@receiver(message_appended)
def publish_message(sender, message, **kwargs):
    publish_conversation_event(
        message.conversation.conversation_id,
        "message_appended",
        {"message": ConversationMessageSerializer(message).data},
    )


@receiver(conversation_updated)
def publish_conversation_update(sender, conversation, fields, **kwargs):
    publish_conversation_event(
        conversation.conversation_id,
        "conversation_updated",
        {field: getattr(conversation, field) for field in fields},
    )


@receiver(member_added)
def publish_member_added(sender, conversation_id, user_id, **kwargs):
    publish_conversation_event(conversation_id, "member_added", {"user_id": user_id})


@receiver(member_removed)
def publish_member_removed(sender, conversation_id, user_id, **kwargs):
    publish_conversation_event(conversation_id, "member_removed", {"user_id": user_id})


@receiver(read_marker_advanced)
def publish_read_marker(sender, conversation_id, user_id, message_id, **kwargs):
    publish_conversation_event(
        conversation_id, "read_marker_advanced", {"user_id": user_id, "message_id": message_id}
    )


@receiver(conversation_deleted)
def publish_conversation_deleted(sender, conversation_id, **kwargs):
    publish_conversation_event(conversation_id, "conversation_deleted", {})
