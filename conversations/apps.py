from django.apps import AppConfig


class ConversationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'conversations'

    def ready(self) -> None:
        """Register the lifecycle signal receivers."""
        import conversations.signals  # noqa: F401
