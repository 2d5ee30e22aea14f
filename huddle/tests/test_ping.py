from django.test import TestCase, Client
from django.urls import reverse
from rest_framework import status
import json


class PingEndpointTest(TestCase):
    def setUp(self):
        """Set up test client."""
        self.client = Client()
        self.ping_url = '/ping/'

    def test_ping_endpoint_returns_bang(self):
        response = self.client.get(self.ping_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/json')
        self.assertEqual(json.loads(response.content), {'message': 'Bang'})

    def test_ping_endpoint_with_reverse_url(self):
        response = self.client.get(reverse('ping'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_ping_endpoint_only_allows_get(self):
        self.assertEqual(self.client.post(self.ping_url).status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertEqual(self.client.delete(self.ping_url).status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
