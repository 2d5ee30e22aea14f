from typing import Set

from django.db import transaction

from .exceptions import NotAMember, translate_storage_errors
from .locks import get_conversation
from .models import ConversationMember, FavoriteConversation


class FavoritesIndex:
    """Per-user favorite marks on conversations. Purely an annotation."""

    @staticmethod
    @translate_storage_errors
    def toggle(user_id: str, conversation_id: str) -> bool:
        """Flip the favorite mark and return whether it is now set."""
        conversation = get_conversation(conversation_id)

        with transaction.atomic():
            # the member row doubles as the lock for concurrent toggles
            member = (
                ConversationMember.objects.select_for_update()
                .filter(conversation=conversation, user_id=user_id)
                .first()
            )
            if member is None:
                raise NotAMember(conversation_id=conversation_id, user_id=user_id)

            deleted, _ = FavoriteConversation.objects.filter(
                conversation=conversation, user_id=user_id
            ).delete()
            if deleted:
                return False

            FavoriteConversation.objects.create(conversation=conversation, user_id=user_id)
            return True

    @staticmethod
    def list_favorites(user_id: str) -> Set[str]:
        return set(
            FavoriteConversation.objects.filter(
                user_id=user_id, conversation__deletion_started_at__isnull=True
            ).values_list("conversation__conversation_id", flat=True)
        )

    @staticmethod
    def is_favorite(user_id: str, conversation_id: str) -> bool:
        return FavoriteConversation.objects.filter(
            user_id=user_id, conversation__conversation_id=conversation_id
        ).exists()
