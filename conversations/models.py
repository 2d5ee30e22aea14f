import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone


def generate_conversation_id():
    return f"conv_{uuid.uuid4().hex[:16]}"


def direct_pair_key(user_a, user_b):
    """Order-independent key for the pair of users in a direct conversation."""
    first, second = sorted([str(user_a), str(user_b)])
    return f"{first}:{second}"


class Conversation(models.Model):
    conversation_id = models.CharField(
        max_length=100, unique=True, default=generate_conversation_id
    )
    is_group = models.BooleanField(default=False)
    name = models.CharField(max_length=255, null=True, blank=True)
    avatar_url = models.CharField(max_length=500, null=True, blank=True)
    created_by = models.CharField(max_length=100)
    direct_key = models.CharField(max_length=255, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_message_at = models.DateTimeField(null=True, blank=True)
    deletion_started_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "conversations_conversation"
        ordering = ["-last_message_at", "-created_at"]

    def __str__(self):
        if self.is_group:
            return f"Group {self.name} ({self.conversation_id})"
        return f"Conversation {self.conversation_id}"

    @property
    def is_deleting(self):
        return self.deletion_started_at is not None

    def counterpart_id(self, user_id):
        """For a direct conversation, the id of the other participant."""
        if self.is_group or not self.direct_key:
            return None
        first, second = self.direct_key.split(":", 1)
        return second if first == user_id else first


class ConversationMember(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="members"
    )
    user_id = models.CharField(max_length=100, db_index=True)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "conversations_conversationmember"
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user_id"], name="unique_conversation_member"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} in {self.conversation.conversation_id}"


class ConversationMessage(models.Model):
    ATTACHMENT_TYPE_CHOICES = [
        ("image", "Image"),
        ("video", "Video"),
        ("audio", "Audio"),
        ("file", "File"),
    ]

    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="messages"
    )
    sender_id = models.CharField(max_length=100)
    content = models.TextField(blank=True, default="")
    attachment_url = models.CharField(max_length=500, null=True, blank=True)
    attachment_type = models.CharField(
        max_length=10, choices=ATTACHMENT_TYPE_CHOICES, null=True, blank=True
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "conversations_conversationmessage"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(
                fields=["conversation", "created_at", "id"],
                name="conv_message_order_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(content="") | Q(attachment_url__isnull=False),
                name="message_has_content_or_attachment",
            ),
        ]

    def __str__(self):
        return f"{self.sender_id}: {self.content[:50]}..."

    @property
    def ordering_key(self):
        return (self.created_at, self.id)


class ReadMarker(models.Model):
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="read_markers"
    )
    user_id = models.CharField(max_length=100)
    last_read_message = models.ForeignKey(
        ConversationMessage,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    last_read_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "conversations_readmarker"
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user_id"], name="unique_read_marker"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} read {self.conversation.conversation_id} up to {self.last_read_message_id}"

    @property
    def ordering_key(self):
        if self.last_read_message_id is None:
            return None
        return (self.last_read_at, self.last_read_message_id)


class FavoriteConversation(models.Model):
    user_id = models.CharField(max_length=100, db_index=True)
    conversation = models.ForeignKey(
        Conversation, on_delete=models.CASCADE, related_name="favorites"
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "conversations_favoriteconversation"
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "conversation"], name="unique_favorite_conversation"
            ),
        ]

    def __str__(self):
        return f"{self.user_id} favorited {self.conversation.conversation_id}"
