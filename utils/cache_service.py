"""
Cache Service for unread counts
"""

import logging
from typing import Optional, Tuple

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)


class UnreadCountCacheService:
    """
    Caches derived unread counts per (conversation, user).

    Entries are keyed by a per-conversation version number. Bumping the
    version orphans every cached count of that conversation at once, so
    invalidation never has to enumerate members or scan keys. The cache is
    only an accelerator: every failure here degrades to recomputing from the
    message log.
    """

    def __init__(self):
        self.cache_prefix = "unread"

    @property
    def timeout(self) -> int:
        return getattr(settings, "HUDDLE_UNREAD_CACHE_TIMEOUT", 300)

    @property
    def enabled(self) -> bool:
        return self.timeout > 0

    def get_count(self, conversation_id: str, user_id: str) -> Tuple[Optional[str], Optional[int]]:
        """
        Look up a cached count and return ``(cache_key, count)``.

        Callers that miss must store their freshly computed count under the
        returned key. The key pins the version seen before the count was
        computed, so an invalidation that lands in between orphans the store.
        """
        if not self.enabled:
            return None, None
        try:
            cache_key = self._generate_cache_key(conversation_id, user_id)
            count = cache.get(cache_key)
            if count is not None:
                logger.debug(f"Unread cache hit for key: {cache_key}")
            return cache_key, count
        except Exception as e:
            logger.warning(f"Error reading unread cache: {e}")
            return None, None

    def set_count(self, cache_key: Optional[str], count: int) -> bool:
        if not self.enabled or cache_key is None:
            return False
        try:
            cache.set(cache_key, count, self.timeout)
            return True
        except Exception as e:
            logger.warning(f"Error storing unread cache: {e}")
            return False

    def invalidate_conversation(self, conversation_id: str) -> bool:
        """Drop every cached count for a conversation."""
        version_key = self._version_key(conversation_id)
        try:
            try:
                cache.incr(version_key)
            except ValueError:
                # incr on a missing key
                cache.set(version_key, 1, None)
            logger.debug(f"Invalidated unread cache for conversation: {conversation_id}")
            return True
        except Exception as e:
            logger.error(f"Error invalidating unread cache for {conversation_id}: {e}")
            return False

    def _version_key(self, conversation_id: str) -> str:
        return f"{self.cache_prefix}:version:{conversation_id}"

    def _generate_cache_key(self, conversation_id: str, user_id: str) -> str:
        version = cache.get(self._version_key(conversation_id), 0)
        return f"{self.cache_prefix}:{conversation_id}:v{version}:user_{user_id}"


cache_service = UnreadCountCacheService()
