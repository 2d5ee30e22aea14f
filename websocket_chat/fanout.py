"""
Realtime fan-out of conversation events to connected websocket clients.

Every connection that joined a conversation is subscribed to that
conversation's channel-layer group. Publishing is best effort: a client that
misses an event catches up through the HTTP message log.
"""

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


def conversation_group_name(conversation_id: str) -> str:
    return f"conversation_{conversation_id}"


def publish_conversation_event(conversation_id: str, event_type: str, payload: dict) -> bool:
    """Send one event to everyone subscribed to ``conversation_id``."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return False

    try:
        async_to_sync(channel_layer.group_send)(
            conversation_group_name(conversation_id),
            {
                "type": "conversation.event",
                "event": event_type,
                "conversation_id": conversation_id,
                "payload": payload,
            },
        )
        return True
    except Exception as e:
        logger.error(f"Failed to publish {event_type} for {conversation_id}: {e}")
        return False
