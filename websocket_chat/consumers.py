import asyncio
import json
import logging
from collections import deque

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncWebsocketConsumer
from django.conf import settings

from conversations.exceptions import ConversationError
from conversations.members import MemberStore
from conversations.message_log import MessageLog
from conversations.serializers import ConversationMessageSerializer
from conversations.unread import UnreadTracker

from .fanout import conversation_group_name

logger = logging.getLogger(__name__)


class SeenMessages:
    """Bounded memory of message ids already delivered on one connection."""

    def __init__(self, size):
        self._order = deque()
        self._ids = set()
        self._size = size

    def add(self, message_id):
        """Remember ``message_id``; returns False if it was already seen."""
        if message_id in self._ids:
            return False
        self._ids.add(message_id)
        self._order.append(message_id)
        if len(self._order) > self._size:
            self._ids.discard(self._order.popleft())
        return True

    def __contains__(self, message_id):
        return message_id in self._ids


class ChatConsumer(AsyncWebsocketConsumer):
    """
    Live view of one conversation at a time.

    Clients join a conversation they are a member of and then receive its
    events as they are committed. Sends and read receipts go through the same
    core operations as the HTTP API.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = None
        self.current_conversation = None
        self.room_group_name = None
        self.heartbeat_task = None
        self.seen_messages = SeenMessages(settings.WEBSOCKET_SEEN_MESSAGE_WINDOW)

    async def connect(self):
        self.user_id = self.scope.get('user_id')
        if not self.user_id:
            await self.close(code=4001)
            return

        await self.accept()
        self.heartbeat_task = asyncio.create_task(self.heartbeat_loop())

    async def disconnect(self, code):
        if self.heartbeat_task:
            self.heartbeat_task.cancel()

        if self.room_group_name:
            await self.leave_conversation_room()

    async def receive(self, text_data=None, bytes_data=None):
        """Dispatch an incoming client frame by its ``type``"""
        if text_data is None:
            await self.send_error("Only text frames are supported")
            return
        if len(text_data) > self.scope.get('max_message_size', settings.WEBSOCKET_MAX_MESSAGE_SIZE):
            await self.send_error("Message too large")
            return

        try:
            data = json.loads(text_data)
        except json.JSONDecodeError:
            await self.send_error("Invalid JSON format")
            return
        if not isinstance(data, dict):
            await self.send_error("Invalid JSON format")
            return

        handlers = {
            'join_conversation': self.handle_join_conversation,
            'leave_conversation': self.handle_leave_conversation,
            'chat_message': self.handle_chat_message,
            'mark_read': self.handle_mark_read,
            'heartbeat': self.handle_heartbeat,
        }
        handler = handlers.get(data.get('type'))
        if handler is None:
            await self.send_error("Unknown message type")
            return

        try:
            await handler(data)
        except ConversationError as e:
            await self.send_error(e.message, code=e.code)

    async def handle_join_conversation(self, data):
        conversation_id = data.get('conversation_id')
        if not conversation_id:
            await self.send_error("Conversation ID required")
            return

        if not await self.verify_conversation_access(conversation_id):
            await self.send_error("Access denied to conversation", code="not_a_member")
            return

        if self.room_group_name:
            await self.leave_conversation_room()

        self.current_conversation = conversation_id
        self.room_group_name = conversation_group_name(conversation_id)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)

        await self.send_json_frame({
            'type': 'conversation_joined',
            'conversation_id': conversation_id
        })

    async def handle_leave_conversation(self, data):
        conversation_id = self.current_conversation
        await self.leave_conversation_room()
        await self.send_json_frame({
            'type': 'conversation_left',
            'conversation_id': conversation_id
        })

    async def handle_chat_message(self, data):
        if not self.room_group_name:
            await self.send_error("Not in a conversation")
            return

        message = await self.append_message(
            data.get('content', ''), data.get('attachment')
        )
        # The committed message also reaches this connection through the
        # group; remembering the id here keeps it from being delivered twice.
        self.seen_messages.add(message['id'])
        await self.send_json_frame({
            'type': 'message_sent',
            'client_id': data.get('client_id'),
            'message': message
        })

    async def handle_mark_read(self, data):
        if not self.room_group_name:
            await self.send_error("Not in a conversation")
            return

        unread_count = await self.mark_read(data.get('message_id'))
        await self.send_json_frame({
            'type': 'read_marker_updated',
            'conversation_id': self.current_conversation,
            'unread_count': unread_count
        })

    async def handle_heartbeat(self, data=None):
        await self.send_json_frame({
            'type': 'heartbeat_response',
            'timestamp': asyncio.get_event_loop().time()
        })

    async def conversation_event(self, event):
        """Forward a fan-out event for the joined conversation to the client"""
        if event.get('conversation_id') != self.current_conversation:
            return

        event_type = event['event']
        payload = event.get('payload') or {}

        if event_type == 'message_appended':
            if not self.seen_messages.add(payload['message']['id']):
                return
        elif event_type == 'member_removed' and payload.get('user_id') == self.user_id:
            await self.evict('removed')
            return
        elif event_type == 'conversation_deleted':
            await self.evict('deleted')
            return

        await self.send_json_frame({
            'type': event_type,
            'conversation_id': event['conversation_id'],
            **payload
        })

    async def evict(self, reason):
        """Drop the subscription after losing access to the conversation"""
        conversation_id = self.current_conversation
        await self.leave_conversation_room()
        await self.send_json_frame({
            'type': 'conversation_left',
            'conversation_id': conversation_id,
            'reason': reason
        })

    async def leave_conversation_room(self):
        if self.room_group_name:
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)
            self.room_group_name = None
            self.current_conversation = None

    async def heartbeat_loop(self):
        """Send periodic heartbeat to keep connection alive"""
        interval = self.scope.get('heartbeat_interval', settings.WEBSOCKET_HEARTBEAT_INTERVAL)
        while True:
            try:
                await asyncio.sleep(interval)
                await self.send_json_frame({
                    'type': 'heartbeat',
                    'timestamp': asyncio.get_event_loop().time()
                })
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.debug(f"Heartbeat stopped for {self.user_id}: {e}")
                break

    async def send_json_frame(self, data):
        await self.send(text_data=json.dumps(data))

    async def send_error(self, message, code=None):
        frame = {'type': 'error', 'message': message}
        if code:
            frame['code'] = code
        await self.send_json_frame(frame)

    @database_sync_to_async
    def verify_conversation_access(self, conversation_id):
        return MemberStore.is_member(conversation_id, self.user_id)

    @database_sync_to_async
    def append_message(self, content, attachment=None):
        message = MessageLog.append(
            self.current_conversation, self.user_id, content=content, attachment=attachment
        )
        return ConversationMessageSerializer(message).data

    @database_sync_to_async
    def mark_read(self, message_id=None):
        UnreadTracker.mark_read(self.current_conversation, self.user_id, message_id)
        return UnreadTracker.unread_count(self.current_conversation, self.user_id)
