"""
JWT utilities for Huddle.

Identity is owned by an external provider; this service only verifies the
bearer tokens it issues and reads the user id from the ``sub`` claim.
``generate_test_token`` signs tokens with the configured secret for tests and
local development.
"""

import logging
import time

import jwt
from django.conf import settings

logger = logging.getLogger(__name__)


class JWTManager:
    """
    JWT Manager for token generation and validation.
    """

    def _get_secret(self):
        return getattr(settings, 'JWT_SECRET', 'test_jwt_secret_key')

    def _get_algorithm(self):
        return getattr(settings, 'JWT_ALGORITHM', 'HS256')

    def _get_verification_key(self):
        # HS* tokens are verified with the shared secret, asymmetric ones with the public key
        if self._get_algorithm().startswith('HS'):
            return self._get_secret()
        return getattr(settings, 'JWT_PUBLIC_KEY', self._get_secret())

    def generate_token(self, user_id, expires_in_hours=24, **claims):
        """
        Generate a signed token for ``user_id``.

        Audience and issuer claims are added when they are configured, so
        generated tokens pass ``validate_token``.
        """
        now = int(time.time())
        payload = {
            'sub': user_id,
            'iat': now,
            'exp': now + (expires_in_hours * 3600),
        }
        audience = getattr(settings, 'JWT_AUDIENCE', None)
        issuer = getattr(settings, 'JWT_ISSUER', None)
        if audience:
            payload['aud'] = audience
        if issuer:
            payload['iss'] = issuer
        payload.update(claims)

        return jwt.encode(payload, self._get_secret(), algorithm=self._get_algorithm())

    def validate_token(self, token):
        """
        Validate a JWT token and return its payload.

        Raises:
            jwt.InvalidTokenError: If the token is invalid, expired or has no subject
        """
        audience = getattr(settings, 'JWT_AUDIENCE', None)
        issuer = getattr(settings, 'JWT_ISSUER', None)
        try:
            payload = jwt.decode(
                token,
                self._get_verification_key(),
                algorithms=[self._get_algorithm()],
                audience=audience,
                issuer=issuer,
                options={'require': ['exp', 'sub']},
            )
        except jwt.ExpiredSignatureError:
            raise jwt.InvalidTokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise jwt.InvalidTokenError(f"Invalid token: {str(e)}")

        if not payload.get('sub'):
            raise jwt.InvalidTokenError("Token has no subject")
        return payload

    def extract_user_id(self, token):
        """Return the user id from ``token``, or None if it does not validate."""
        try:
            return str(self.validate_token(token)['sub'])
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected token: {e}")
            return None


_jwt_manager = None


def _get_jwt_manager():
    """Get the global JWT manager instance, creating it if needed."""
    global _jwt_manager
    if _jwt_manager is None:
        _jwt_manager = JWTManager()
    return _jwt_manager


def generate_test_token(user_id, expires_in_hours=24, **claims):
    """Generate a test JWT token for the given user ID."""
    return _get_jwt_manager().generate_token(user_id, expires_in_hours, **claims)


def validate_jwt_token(token):
    """Validate a JWT token and return the payload."""
    return _get_jwt_manager().validate_token(token)


def get_user_id_from_token(token):
    """Extract user ID from JWT token."""
    return _get_jwt_manager().extract_user_id(token)
