from django.apps import AppConfig


class WebsocketChatConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'websocket_chat'

    def ready(self):
        from . import signals  # noqa: F401
