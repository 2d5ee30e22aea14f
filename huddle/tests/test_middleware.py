import json
import time
from unittest.mock import MagicMock

import jwt
from django.conf import settings
from django.http import JsonResponse
from django.test import RequestFactory, TestCase, override_settings

from huddle.jwt_utils import generate_test_token, get_user_id_from_token, validate_jwt_token
from huddle.middleware import JWTAuthMiddleware


class JWTAuthMiddlewareTest(TestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.get_response = MagicMock(return_value=JsonResponse({'message': 'success'}))
        self.middleware = JWTAuthMiddleware(self.get_response)
        self.test_user_id = 'user123'

    def test_valid_bearer_token(self):
        token = generate_test_token(self.test_user_id)
        request = self.factory.get('/conversations/')
        request.META['HTTP_AUTHORIZATION'] = f'Bearer {token}'

        response = self.middleware(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(request.user_id, self.test_user_id)
        self.get_response.assert_called_once_with(request)

    def test_no_authorization_header(self):
        request = self.factory.get('/conversations/')

        response = self.middleware(request)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(json.loads(response.content)['code'], 'not_authenticated')
        self.get_response.assert_not_called()

    def test_invalid_bearer_token(self):
        request = self.factory.get('/conversations/')
        request.META['HTTP_AUTHORIZATION'] = 'Bearer invalid_token'

        response = self.middleware(request)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(json.loads(response.content)['error'], 'Invalid JWT')
        self.get_response.assert_not_called()

    def test_expired_token(self):
        token = jwt.encode(
            {'sub': self.test_user_id, 'exp': int(time.time()) - 60},
            settings.JWT_SECRET,
            algorithm='HS256',
        )
        request = self.factory.get('/conversations/')
        request.META['HTTP_AUTHORIZATION'] = f'Bearer {token}'

        response = self.middleware(request)

        self.assertEqual(response.status_code, 401)

    def test_exempt_url(self):
        request = self.factory.get('/ping/')

        response = self.middleware(request)

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(request.user_id)


class JWTUtilsTest(TestCase):
    def test_round_trip(self):
        token = generate_test_token('user-1')
        self.assertEqual(validate_jwt_token(token)['sub'], 'user-1')
        self.assertEqual(get_user_id_from_token(token), 'user-1')

    def test_token_signed_with_another_secret(self):
        token = jwt.encode(
            {'sub': 'user-1', 'exp': int(time.time()) + 60}, 'other-secret', algorithm='HS256'
        )
        self.assertIsNone(get_user_id_from_token(token))

    def test_token_without_subject(self):
        token = jwt.encode({'exp': int(time.time()) + 60}, settings.JWT_SECRET, algorithm='HS256')
        with self.assertRaises(jwt.InvalidTokenError):
            validate_jwt_token(token)

    @override_settings(JWT_AUDIENCE='huddle', JWT_ISSUER='https://id.example.com/')
    def test_audience_and_issuer(self):
        token = generate_test_token('user-1')
        self.assertEqual(get_user_id_from_token(token), 'user-1')

        foreign = jwt.encode(
            {'sub': 'user-1', 'exp': int(time.time()) + 60, 'aud': 'other-app', 'iss': 'https://id.example.com/'},
            settings.JWT_SECRET,
            algorithm='HS256',
        )
        self.assertIsNone(get_user_id_from_token(foreign))
