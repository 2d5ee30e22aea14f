import html
import logging
from typing import Iterator, Optional

import bleach
from django.conf import settings
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from utils.cache_service import cache_service

from .exceptions import (
    EmptyMessage,
    InvalidAttachment,
    MessageNotFound,
    NotAuthorized,
    translate_storage_errors,
)
from .locks import get_conversation, lock_conversation
from .members import MemberStore
from .models import ConversationMessage
from .registry import ConversationRegistry
from .signals import message_appended, send_on_commit

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
ATTACHMENT_TYPES = {choice for choice, _ in ConversationMessage.ATTACHMENT_TYPE_CHOICES}
ATTACHMENT_URL_MAX_LENGTH = ConversationMessage._meta.get_field("attachment_url").max_length


def sanitize_content(content) -> str:
    """Strip markup from message text, keeping literal characters such as ``&`` and ``<``"""
    if content is None:
        return ""
    if not isinstance(content, str):
        raise EmptyMessage("Message content must be text")
    # bleach escapes the text it keeps; the log stores plain text
    return html.unescape(bleach.clean(content, tags=[], attributes={}, strip=True)).strip()


def normalize_attachment(attachment):
    """
    Accept ``None``, a ``{"url": ..., "type": ...}`` mapping or a ``(url, type)``
    pair and return ``(url, type)``. The reference itself stays opaque.
    """
    if attachment is None:
        return None, None

    if isinstance(attachment, dict):
        url, kind = attachment.get("url"), attachment.get("type")
    elif isinstance(attachment, (tuple, list)) and len(attachment) == 2:
        url, kind = attachment
    else:
        raise InvalidAttachment()

    if not url:
        return None, None
    if not isinstance(url, str) or len(url) > ATTACHMENT_URL_MAX_LENGTH:
        raise InvalidAttachment()

    kind = kind or "file"
    if kind not in ATTACHMENT_TYPES:
        raise InvalidAttachment(f"Attachment type must be one of {', '.join(sorted(ATTACHMENT_TYPES))}")
    return url, kind


def after_key(created_at, message_id) -> Q:
    """Messages strictly after ``(created_at, id)``."""
    return Q(created_at__gt=created_at) | Q(created_at=created_at, id__gt=message_id)


def before_key(created_at, message_id) -> Q:
    """Messages strictly before ``(created_at, id)``."""
    return Q(created_at__lt=created_at) | Q(created_at=created_at, id__lt=message_id)


def clamp_limit(limit) -> int:
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = DEFAULT_PAGE_SIZE
    return max(1, min(limit, settings.HUDDLE_MESSAGE_PAGE_MAX))


def get_message(conversation, message_id) -> ConversationMessage:
    try:
        return ConversationMessage.objects.get(conversation=conversation, pk=message_id)
    except (ConversationMessage.DoesNotExist, ValueError, TypeError):
        raise MessageNotFound(message_id=str(message_id))


class MessageLog:
    """
    Append-only, per-conversation ordered log of messages.

    Order is the server-assigned ``(created_at, id)`` pair; client clocks
    never take part in it.
    """

    @staticmethod
    @translate_storage_errors
    def append(
        conversation_id: str,
        sender_id: str,
        content: Optional[str] = "",
        attachment=None,
    ) -> ConversationMessage:
        with transaction.atomic():
            conversation = lock_conversation(conversation_id)
            if not MemberStore.is_member(conversation_id, sender_id):
                raise NotAuthorized(
                    "Only members can send messages to this conversation",
                    conversation_id=conversation_id,
                )

            content = sanitize_content(content)
            attachment_url, attachment_type = normalize_attachment(attachment)
            if not content and not attachment_url:
                raise EmptyMessage()

            # The lock makes this the only writer, so the clock may only be
            # held back to keep created_at non-decreasing
            created_at = timezone.now()
            if conversation.last_message_at and created_at < conversation.last_message_at:
                created_at = conversation.last_message_at

            message = ConversationMessage.objects.create(
                conversation=conversation,
                sender_id=sender_id,
                content=content,
                attachment_url=attachment_url,
                attachment_type=attachment_type,
                created_at=created_at,
            )
            ConversationRegistry.touch(conversation_id, at=created_at)

            cache_service.invalidate_conversation(conversation_id)
            # again after commit, for readers that cached a count mid-transaction
            transaction.on_commit(lambda: cache_service.invalidate_conversation(conversation_id))
            send_on_commit(message_appended, sender=MessageLog, message=message)

        logger.info(f"Message {message.id} appended to {conversation_id} by {sender_id}")
        return message

    @staticmethod
    def list_since(
        conversation_id: str,
        after_message_id=None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[ConversationMessage]:
        """
        Oldest-first messages strictly after ``after_message_id`` (or from the
        start), at most ``limit``. Re-issue with the last returned id to continue.
        """
        conversation = get_conversation(conversation_id)
        queryset = ConversationMessage.objects.filter(conversation=conversation)
        if after_message_id is not None:
            anchor = get_message(conversation, after_message_id)
            queryset = queryset.filter(after_key(anchor.created_at, anchor.id))
        return queryset.order_by("created_at", "id")[: clamp_limit(limit)].iterator()

    @staticmethod
    def list_before(
        conversation_id: str,
        before_message_id=None,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Iterator[ConversationMessage]:
        """
        Newest-first messages strictly before ``before_message_id`` (or from the
        end), at most ``limit``. Used for scrolling back through history.
        """
        conversation = get_conversation(conversation_id)
        queryset = ConversationMessage.objects.filter(conversation=conversation)
        if before_message_id is not None:
            anchor = get_message(conversation, before_message_id)
            queryset = queryset.filter(before_key(anchor.created_at, anchor.id))
        return queryset.order_by("-created_at", "-id")[: clamp_limit(limit)].iterator()

    @staticmethod
    def latest(conversation) -> Optional[ConversationMessage]:
        return (
            ConversationMessage.objects.filter(conversation=conversation)
            .order_by("-created_at", "-id")
            .first()
        )

    @staticmethod
    def purge(conversation_id: str) -> int:
        """Delete every message of a conversation. Safe to repeat."""
        with transaction.atomic():
            conversation = lock_conversation(conversation_id, include_deleting=True)
            deleted, _ = ConversationMessage.objects.filter(conversation=conversation).delete()
            cache_service.invalidate_conversation(conversation_id)

        logger.info(f"Purged {deleted} messages from conversation {conversation_id}")
        return deleted
