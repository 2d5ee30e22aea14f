import conversations.models
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("conversation_id", models.CharField(default=conversations.models.generate_conversation_id, max_length=100, unique=True)),
                ("is_group", models.BooleanField(default=False)),
                ("name", models.CharField(blank=True, max_length=255, null=True)),
                ("avatar_url", models.CharField(blank=True, max_length=500, null=True)),
                ("created_by", models.CharField(max_length=100)),
                ("direct_key", models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("last_message_at", models.DateTimeField(blank=True, null=True)),
                ("deletion_started_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "conversations_conversation",
                "ordering": ["-last_message_at", "-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ConversationMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=100)),
                ("joined_at", models.DateTimeField(auto_now_add=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="members", to="conversations.conversation")),
            ],
            options={
                "db_table": "conversations_conversationmember",
                "ordering": ["joined_at", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("conversation", "user_id"), name="unique_conversation_member"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ConversationMessage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sender_id", models.CharField(max_length=100)),
                ("content", models.TextField(blank=True, default="")),
                ("attachment_url", models.CharField(blank=True, max_length=500, null=True)),
                ("attachment_type", models.CharField(blank=True, choices=[("image", "Image"), ("video", "Video"), ("audio", "Audio"), ("file", "File")], max_length=10, null=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="messages", to="conversations.conversation")),
            ],
            options={
                "db_table": "conversations_conversationmessage",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["conversation", "created_at", "id"], name="conv_message_order_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("content", ""), _negated=True) | models.Q(("attachment_url__isnull", False)),
                        name="message_has_content_or_attachment",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="ReadMarker",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=100)),
                ("last_read_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="read_markers", to="conversations.conversation")),
                ("last_read_message", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="conversations.conversationmessage")),
            ],
            options={
                "db_table": "conversations_readmarker",
                "constraints": [
                    models.UniqueConstraint(fields=("conversation", "user_id"), name="unique_read_marker"),
                ],
            },
        ),
        migrations.CreateModel(
            name="FavoriteConversation",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(db_index=True, max_length=100)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("conversation", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="favorites", to="conversations.conversation")),
            ],
            options={
                "db_table": "conversations_favoriteconversation",
                "constraints": [
                    models.UniqueConstraint(fields=("user_id", "conversation"), name="unique_favorite_conversation"),
                ],
            },
        ),
    ]
