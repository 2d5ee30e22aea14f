from rest_framework import serializers

from .members import MemberStore
from .message_log import MessageLog
from .models import Conversation, ConversationMember, ConversationMessage, ReadMarker


class ConversationMessageSerializer(serializers.ModelSerializer):
    conversation_id = serializers.CharField(source='conversation.conversation_id', read_only=True)
    attachment = serializers.SerializerMethodField()

    class Meta:
        model = ConversationMessage
        fields = ['id', 'conversation_id', 'sender_id', 'content', 'attachment', 'created_at']
        read_only_fields = fields

    def get_attachment(self, obj):
        if not obj.attachment_url:
            return None
        return {'url': obj.attachment_url, 'type': obj.attachment_type}


class ConversationMemberSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConversationMember
        fields = ['user_id', 'joined_at']
        read_only_fields = fields


class ReadMarkerSerializer(serializers.ModelSerializer):
    conversation_id = serializers.CharField(source='conversation.conversation_id', read_only=True)

    class Meta:
        model = ReadMarker
        fields = ['conversation_id', 'user_id', 'last_read_message', 'last_read_at']
        read_only_fields = fields


class ConversationListSerializer(serializers.ModelSerializer):
    """
    Conversation summary for the caller's inbox.

    Unread counts and favorite marks are computed once for the whole page by
    the view and passed in through the context as ``unread_counts`` and
    ``favorites``.
    """
    last_message = serializers.SerializerMethodField()
    unread_count = serializers.SerializerMethodField()
    is_favorite = serializers.SerializerMethodField()
    counterpart_id = serializers.SerializerMethodField()

    class Meta:
        model = Conversation
        fields = ['conversation_id', 'is_group', 'name', 'avatar_url', 'created_by',
                  'counterpart_id', 'created_at', 'last_message_at', 'last_message',
                  'unread_count', 'is_favorite']

    def get_last_message(self, obj):
        """Preview of the newest message"""
        last_message = MessageLog.latest(obj)
        if last_message:
            content = last_message.content
            return {
                'id': last_message.id,
                'sender_id': last_message.sender_id,
                'content': content[:100] + '...' if len(content) > 100 else content,
                'has_attachment': bool(last_message.attachment_url),
                'created_at': last_message.created_at,
            }
        return None

    def get_unread_count(self, obj):
        return self.context.get('unread_counts', {}).get(obj.conversation_id, 0)

    def get_is_favorite(self, obj):
        return obj.conversation_id in self.context.get('favorites', set())

    def get_counterpart_id(self, obj):
        user_id = self.context.get('user_id')
        return obj.counterpart_id(user_id) if user_id else None


class ConversationSerializer(ConversationListSerializer):
    """Conversation detail, including the member list"""
    members = serializers.SerializerMethodField()

    class Meta(ConversationListSerializer.Meta):
        fields = ConversationListSerializer.Meta.fields + ['updated_at', 'members']

    def get_members(self, obj):
        members = MemberStore.list_members(obj.conversation_id)
        return ConversationMemberSerializer(members, many=True).data


class DirectConversationCreateSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=100)


class AttachmentSerializer(serializers.Serializer):
    url = serializers.CharField(max_length=500)
    type = serializers.ChoiceField(
        choices=[choice for choice, _ in ConversationMessage.ATTACHMENT_TYPE_CHOICES],
        required=False,
        default='file',
    )


class MessageCreateSerializer(serializers.Serializer):
    content = serializers.CharField(required=False, allow_blank=True, default='', trim_whitespace=False)
    attachment = AttachmentSerializer(required=False, allow_null=True)


class MarkReadSerializer(serializers.Serializer):
    message_id = serializers.IntegerField(required=False, allow_null=True, min_value=1)
