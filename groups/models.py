from django.db import models


class GroupDeletion(models.Model):
    """
    Durable progress marker for a group cascade delete.

    ``completed_steps`` counts finished steps of ``GroupAdmin.CASCADE_STEPS``;
    a retried delete resumes right after it. The row outlives the conversation
    it describes, so it references it by id only.
    """

    conversation_id = models.CharField(max_length=100, unique=True)
    requested_by = models.CharField(max_length=100)
    completed_steps = models.PositiveSmallIntegerField(default=0)
    failed_step = models.CharField(max_length=32, null=True, blank=True)
    last_error = models.TextField(blank=True, default="")
    attempts = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "group_deletions"
        ordering = ["-created_at"]

    def __str__(self):
        state = "completed" if self.completed_at else f"{self.completed_steps} steps done"
        return f"Deletion of {self.conversation_id} ({state})"

    @property
    def is_complete(self):
        return self.completed_at is not None
