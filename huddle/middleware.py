import logging

import jwt
from django.http import JsonResponse

from .jwt_utils import validate_jwt_token

logger = logging.getLogger(__name__)


class JWTAuthMiddleware:
    """
    Authenticate HTTP requests with a bearer token from the identity provider.

    On success the caller's id is set as ``request.user_id``; views rely on
    it being present. Requests without a valid token get a 401 unless their
    path is exempt.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        # URLs that don't require authentication
        self.exempt_urls = [
            '/ping/',
            '/admin/',
            '/static/',
        ]

    def __call__(self, request):
        request.user_id = None
        if self._is_exempt_url(request.path):
            return self.get_response(request)

        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        if not auth_header.startswith('Bearer '):
            return JsonResponse(
                {'error': 'Authentication required', 'code': 'not_authenticated'},
                status=401,
            )

        token = auth_header.split(' ', 1)[1].strip()
        try:
            payload = validate_jwt_token(token)
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT validation failed for {request.path}: {e}")
            return JsonResponse({'error': 'Invalid JWT', 'code': 'invalid_token'}, status=401)

        request.user_id = str(payload['sub'])
        return self.get_response(request)

    def _is_exempt_url(self, path):
        return any(path.startswith(url) for url in self.exempt_urls)
