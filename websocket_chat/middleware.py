import logging
import time
from urllib.parse import parse_qs

from channels.middleware import BaseMiddleware
from django.conf import settings
from django.core.cache import cache

from huddle.jwt_utils import get_user_id_from_token

logger = logging.getLogger(__name__)


class WebSocketAuthMiddleware(BaseMiddleware):
    """
    Authenticate websocket handshakes with the ``token`` query parameter
    and rate limit new connections per user.
    """

    async def __call__(self, scope, receive, send):
        query_params = parse_qs(scope.get('query_string', b'').decode())
        token = query_params.get('token', [None])[0]

        if not token:
            await send({
                'type': 'websocket.close',
                'code': 4001,
                'reason': 'Authentication token required'
            })
            return

        user_id = get_user_id_from_token(token)
        if not user_id:
            logger.warning("Rejected websocket connection with an invalid token")
            await send({
                'type': 'websocket.close',
                'code': 4001,
                'reason': 'Invalid authentication token'
            })
            return

        if not await self.check_rate_limit(user_id):
            await send({
                'type': 'websocket.close',
                'code': 4029,
                'reason': 'Rate limit exceeded'
            })
            return

        scope['user_id'] = user_id
        scope['authenticated'] = True

        return await super().__call__(scope, receive, send)

    async def check_rate_limit(self, user_id):
        """Allow at most WEBSOCKET_RATE_LIMIT connections per user per minute"""
        cache_key = f"websocket_rate_limit:{user_id}"
        current_time = int(time.time())

        rate_data = await cache.aget(cache_key, {'count': 0, 'window_start': current_time})
        if current_time - rate_data['window_start'] >= 60:
            rate_data = {'count': 0, 'window_start': current_time}

        if rate_data['count'] >= settings.WEBSOCKET_RATE_LIMIT:
            return False

        rate_data['count'] += 1
        await cache.aset(cache_key, rate_data, 60)
        return True


class WebSocketSecurityMiddleware(BaseMiddleware):
    """Expose connection limits to consumers through the scope"""

    async def __call__(self, scope, receive, send):
        scope['max_message_size'] = settings.WEBSOCKET_MAX_MESSAGE_SIZE
        scope['heartbeat_interval'] = settings.WEBSOCKET_HEARTBEAT_INTERVAL

        return await super().__call__(scope, receive, send)
