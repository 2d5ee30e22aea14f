from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from .favorites import FavoritesIndex
from .members import MemberStore, get_member_conversation
from .message_log import DEFAULT_PAGE_SIZE, MessageLog
from .registry import ConversationRegistry
from .serializers import (
    ConversationListSerializer,
    ConversationMemberSerializer,
    ConversationMessageSerializer,
    ConversationSerializer,
    DirectConversationCreateSerializer,
    MarkReadSerializer,
    MessageCreateSerializer,
    ReadMarkerSerializer,
)
from .unread import UnreadTracker


class ConversationListView(APIView):
    """List the caller's conversations, most recently active first"""

    def get(self, request):
        user_id = request.user_id
        conversations = ConversationRegistry.list_for_user(user_id)
        favorites = FavoritesIndex.list_favorites(user_id)

        if request.query_params.get('favorites') in ('1', 'true', 'True'):
            conversations = conversations.filter(conversation_id__in=favorites)

        conversations = list(conversations)
        serializer = ConversationListSerializer(
            conversations,
            many=True,
            context={
                'request': request,
                'user_id': user_id,
                'favorites': favorites,
                'unread_counts': UnreadTracker.unread_counts(user_id),
            }
        )

        return Response({
            'user_id': user_id,
            'results': serializer.data,
            'total_count': len(conversations)
        })


class DirectConversationCreateView(APIView):
    """Open the direct conversation with another user, creating it on first contact"""

    def post(self, request):
        serializer = DirectConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        conversation, created = ConversationRegistry.create_direct(
            request.user_id, serializer.validated_data['user_id']
        )
        data = ConversationSerializer(
            conversation, context={'request': request, 'user_id': request.user_id}
        ).data

        return Response(
            {'conversation': data, 'is_new': created},
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )


class TotalUnreadView(APIView):

    def get(self, request):
        return Response({
            'user_id': request.user_id,
            'total_unread': UnreadTracker.total_unread(request.user_id),
        })


class FavoriteListView(APIView):

    def get(self, request):
        favorites = FavoritesIndex.list_favorites(request.user_id)
        return Response({'conversation_ids': sorted(favorites)})


class ConversationDetailView(APIView):

    def get(self, request, conversation_id):
        user_id = request.user_id
        conversation = get_member_conversation(conversation_id, user_id)

        serializer = ConversationSerializer(
            conversation,
            context={
                'request': request,
                'user_id': user_id,
                'favorites': FavoritesIndex.list_favorites(user_id),
                'unread_counts': {
                    conversation_id: UnreadTracker.unread_count(conversation_id, user_id)
                },
            }
        )
        return Response(serializer.data)


class ConversationMembersView(APIView):

    def get(self, request, conversation_id):
        get_member_conversation(conversation_id, request.user_id)
        members = MemberStore.list_members(conversation_id)
        return Response({
            'conversation_id': conversation_id,
            'members': ConversationMemberSerializer(members, many=True).data,
        })


class ConversationMessagesView(APIView):
    """
    GET pages through the message log, POST appends to it.

    ``?after=<id>`` returns the messages following ``id`` oldest first;
    ``?before=<id>`` (or no cursor) returns history newest first.
    """

    def get(self, request, conversation_id):
        get_member_conversation(conversation_id, request.user_id)

        after = request.query_params.get('after')
        before = request.query_params.get('before')
        limit = request.query_params.get('limit', DEFAULT_PAGE_SIZE)
        if after and before:
            raise ValidationError({'error': "Use either 'after' or 'before', not both"})

        if after:
            messages = list(MessageLog.list_since(conversation_id, after, limit))
        else:
            messages = list(MessageLog.list_before(conversation_id, before or None, limit))

        return Response({
            'conversation_id': conversation_id,
            'results': ConversationMessageSerializer(messages, many=True).data,
            'count': len(messages),
        })

    def post(self, request, conversation_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        message = MessageLog.append(
            conversation_id,
            request.user_id,
            content=serializer.validated_data.get('content', ''),
            attachment=serializer.validated_data.get('attachment'),
        )
        return Response(
            ConversationMessageSerializer(message).data, status=status.HTTP_201_CREATED
        )


class MarkReadView(APIView):

    def post(self, request, conversation_id):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        marker = UnreadTracker.mark_read(
            conversation_id, request.user_id, serializer.validated_data.get('message_id')
        )
        data = ReadMarkerSerializer(marker).data
        data['unread_count'] = UnreadTracker.unread_count(conversation_id, request.user_id)
        return Response(data)


class UnreadCountView(APIView):

    def get(self, request, conversation_id):
        return Response({
            'conversation_id': conversation_id,
            'unread_count': UnreadTracker.unread_count(conversation_id, request.user_id),
        })


class FavoriteToggleView(APIView):

    def post(self, request, conversation_id):
        is_favorite = FavoritesIndex.toggle(request.user_id, conversation_id)
        return Response({'conversation_id': conversation_id, 'is_favorite': is_favorite})
