from django.contrib import admin
from .models import Conversation, ConversationMember, ConversationMessage, FavoriteConversation, ReadMarker


class ConversationMemberInline(admin.TabularInline):
    model = ConversationMember
    extra = 0
    readonly_fields = ['joined_at']


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ['conversation_id', 'is_group', 'name', 'created_by', 'created_at', 'last_message_at', 'deletion_started_at']
    list_filter = ['is_group', 'created_at']
    search_fields = ['conversation_id', 'name', 'created_by', 'members__user_id']
    readonly_fields = ['conversation_id', 'direct_key', 'created_at', 'updated_at', 'last_message_at']
    inlines = [ConversationMemberInline]


@admin.register(ConversationMessage)
class ConversationMessageAdmin(admin.ModelAdmin):
    list_display = ['id', 'conversation', 'sender_id', 'content_preview', 'attachment_type', 'created_at']
    list_filter = ['attachment_type', 'created_at']
    search_fields = ['content', 'sender_id', 'conversation__conversation_id']
    readonly_fields = ['created_at']

    @admin.display(description='Content Preview')
    def content_preview(self, obj):
        return obj.content[:50] + "..." if len(obj.content) > 50 else obj.content


@admin.register(ReadMarker)
class ReadMarkerAdmin(admin.ModelAdmin):
    list_display = ['conversation', 'user_id', 'last_read_message', 'last_read_at', 'updated_at']
    search_fields = ['user_id', 'conversation__conversation_id']


@admin.register(FavoriteConversation)
class FavoriteConversationAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'conversation', 'created_at']
    search_fields = ['user_id', 'conversation__conversation_id']
