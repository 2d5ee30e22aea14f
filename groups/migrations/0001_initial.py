from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="GroupDeletion",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("conversation_id", models.CharField(max_length=100, unique=True)),
                ("requested_by", models.CharField(max_length=100)),
                ("completed_steps", models.PositiveSmallIntegerField(default=0)),
                ("failed_step", models.CharField(blank=True, max_length=32, null=True)),
                ("last_error", models.TextField(blank=True, default="")),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
            ],
            options={
                "db_table": "group_deletions",
                "ordering": ["-created_at"],
            },
        ),
    ]
