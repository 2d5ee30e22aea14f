"""
Unread counts, derived from read markers and the message log.

Nothing here keeps a running counter: an unread count is always the number
of messages from other members ordered after the user's read marker. The
cache in ``utils.cache_service`` only remembers the last computed value and
is invalidated on every append, mark-read and membership change.
"""

import logging
from typing import Dict, Optional

from django.db import transaction
from django.db.models import Count, F, OuterRef, Q, Subquery

from utils.cache_service import cache_service

from .exceptions import NotAMember, translate_storage_errors
from .locks import get_conversation
from .members import MemberStore
from .message_log import MessageLog, get_message
from .models import ConversationMember, ConversationMessage, ReadMarker
from .signals import read_marker_advanced, send_on_commit

logger = logging.getLogger(__name__)


def unread_messages(user_id: str):
    """
    Messages authored by others that ``user_id`` has not read yet.

    The marker is joined into the same statement, so a count taken from this
    queryset reads marker and log in one snapshot.
    """
    marker = ReadMarker.objects.filter(conversation=OuterRef("conversation"), user_id=user_id)
    return (
        ConversationMessage.objects.exclude(sender_id=user_id)
        .alias(
            marker_at=Subquery(marker.values("last_read_at")[:1]),
            marker_message_id=Subquery(marker.values("last_read_message_id")[:1]),
        )
        .filter(
            Q(marker_message_id__isnull=True)
            | Q(created_at__gt=F("marker_at"))
            | Q(created_at=F("marker_at"), id__gt=F("marker_message_id"))
        )
    )


class UnreadTracker:

    @staticmethod
    @translate_storage_errors
    def mark_read(conversation_id: str, user_id: str, upto_message_id=None) -> ReadMarker:
        """
        Advance the user's read marker to ``upto_message_id`` (default: newest).

        Markers never move backwards; an older message id leaves the marker
        where it is.
        """
        conversation = get_conversation(conversation_id)

        with transaction.atomic():
            member = (
                ConversationMember.objects.select_for_update()
                .filter(conversation=conversation, user_id=user_id)
                .first()
            )
            if member is None:
                raise NotAMember(conversation_id=conversation_id, user_id=user_id)

            if upto_message_id is None:
                target = MessageLog.latest(conversation)
            else:
                target = get_message(conversation, upto_message_id)

            marker, _ = ReadMarker.objects.get_or_create(conversation=conversation, user_id=user_id)
            if target is None:
                return marker

            current = marker.ordering_key
            if current is not None and target.ordering_key <= current:
                return marker

            marker.last_read_message = target
            marker.last_read_at = target.created_at
            marker.save(update_fields=["last_read_message", "last_read_at", "updated_at"])

            cache_service.invalidate_conversation(conversation_id)
            transaction.on_commit(lambda: cache_service.invalidate_conversation(conversation_id))
            send_on_commit(
                read_marker_advanced,
                sender=UnreadTracker,
                conversation_id=conversation_id,
                user_id=user_id,
                message_id=target.id,
            )

        logger.debug(f"{user_id} read {conversation_id} up to message {target.id}")
        return marker

    @staticmethod
    @translate_storage_errors
    def unread_count(conversation_id: str, user_id: str) -> int:
        conversation = get_conversation(conversation_id)
        if not MemberStore.is_member(conversation_id, user_id):
            raise NotAMember(conversation_id=conversation_id, user_id=user_id)

        cache_key, cached = cache_service.get_count(conversation_id, user_id)
        if cached is not None:
            return cached

        count = unread_messages(user_id).filter(conversation=conversation).count()
        cache_service.set_count(cache_key, count)
        return count

    @staticmethod
    @translate_storage_errors
    def unread_counts(user_id: str) -> Dict[str, int]:
        """Unread count per conversation the user currently belongs to."""
        counts = {conversation_id: 0 for conversation_id in MemberStore.conversation_ids_for_user(user_id)}
        rows = (
            unread_messages(user_id)
            .filter(
                conversation__members__user_id=user_id,
                conversation__deletion_started_at__isnull=True,
            )
            .order_by()
            .values("conversation__conversation_id")
            .annotate(unread=Count("id"))
        )
        for row in rows:
            counts[row["conversation__conversation_id"]] = row["unread"]
        return counts

    @staticmethod
    @translate_storage_errors
    def total_unread(user_id: str) -> int:
        """Sum of unread counts over the conversations the user is a member of right now."""
        return (
            unread_messages(user_id)
            .filter(
                conversation__members__user_id=user_id,
                conversation__deletion_started_at__isnull=True,
            )
            .count()
        )

    @staticmethod
    def read_marker(conversation_id: str, user_id: str) -> Optional[ReadMarker]:
        return ReadMarker.objects.filter(
            conversation__conversation_id=conversation_id, user_id=user_id
        ).first()
