from django.contrib import admin
from .models import GroupDeletion


@admin.register(GroupDeletion)
class GroupDeletionAdmin(admin.ModelAdmin):
    list_display = ('conversation_id', 'requested_by', 'completed_steps', 'failed_step', 'attempts', 'created_at', 'completed_at')
    list_filter = ('failed_step', 'created_at')
    search_fields = ('conversation_id', 'requested_by')
    readonly_fields = ('created_at', 'updated_at', 'completed_at')

    fieldsets = (
        ('Request', {
            'fields': ('conversation_id', 'requested_by')
        }),
        ('Progress', {
            'fields': ('completed_steps', 'failed_step', 'last_error', 'attempts')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'completed_at'),
            'classes': ('collapse',)
        }),
    )
