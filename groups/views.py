from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from conversations.locks import get_conversation
from conversations.members import MemberStore
from conversations.serializers import ConversationMemberSerializer, ConversationSerializer
from .serializers import (
    GroupCreateSerializer,
    GroupDeletionSerializer,
    GroupMemberAddSerializer,
    GroupUpdateSerializer,
)
from .services import GroupAdmin


def group_payload(request, conversation_id):
    conversation = get_conversation(conversation_id)
    return ConversationSerializer(
        conversation, context={"request": request, "user_id": request.user_id}
    ).data


class GroupCreateView(APIView):
    """Create a group owned by the caller"""

    def post(self, request):
        serializer = GroupCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation_id = GroupAdmin.create_group(
            request.user_id,
            serializer.validated_data["name"],
            serializer.validated_data["member_ids"],
        )
        return Response(group_payload(request, conversation_id), status=status.HTTP_201_CREATED)


class GroupDetailView(APIView):
    """Rename or re-avatar a group (PATCH) or delete it (DELETE); creator only"""

    def patch(self, request, conversation_id):
        serializer = GroupUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        changes = {}
        if "name" in serializer.validated_data:
            changes["name"] = serializer.validated_data["name"]
        if "avatar_url" in serializer.validated_data:
            changes["avatar"] = serializer.validated_data["avatar_url"] or None

        GroupAdmin.update_group(conversation_id, request.user_id, **changes)
        return Response(group_payload(request, conversation_id))

    def delete(self, request, conversation_id):
        deletion = GroupAdmin.delete_group(conversation_id, request.user_id)
        return Response(GroupDeletionSerializer(deletion).data)


class GroupMembersView(APIView):

    def post(self, request, conversation_id):
        serializer = GroupMemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        member = GroupAdmin.add_member(
            conversation_id, request.user_id, serializer.validated_data["user_id"]
        )
        return Response(
            {
                "conversation_id": conversation_id,
                "member": ConversationMemberSerializer(member).data,
                "members": MemberStore.member_ids(conversation_id),
            },
            status=status.HTTP_201_CREATED,
        )


class GroupMemberRemoveView(APIView):

    def delete(self, request, conversation_id, user_id):
        GroupAdmin.remove_member(conversation_id, request.user_id, user_id)
        return Response(status=status.HTTP_204_NO_CONTENT)


class GroupLeaveView(APIView):

    def post(self, request, conversation_id):
        GroupAdmin.leave_group(conversation_id, request.user_id)
        return Response({"conversation_id": conversation_id, "left": True})
