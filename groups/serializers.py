from rest_framework import serializers

from .models import GroupDeletion


class GroupCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, allow_blank=True, trim_whitespace=False)
    member_ids = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, default=list
    )


class GroupUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, trim_whitespace=False)
    avatar_url = serializers.CharField(max_length=500, required=False, allow_null=True, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide 'name' and/or 'avatar_url'.")
        return attrs


class GroupMemberAddSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=100)


class GroupDeletionSerializer(serializers.ModelSerializer):
    is_complete = serializers.BooleanField(read_only=True)

    class Meta:
        model = GroupDeletion
        fields = [
            "conversation_id",
            "requested_by",
            "completed_steps",
            "failed_step",
            "attempts",
            "is_complete",
            "created_at",
            "completed_at",
        ]
        read_only_fields = fields
