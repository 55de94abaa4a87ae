"""
Tests for rate limiting and error mapping.
"""
import uuid
from decimal import Decimal
from unittest.mock import MagicMock, patch

import redis
from django.test import override_settings
from rest_framework.test import APITestCase

from products.models import Product
from users.models import User


@override_settings(RATE_LIMIT_ENABLED=True, TOGGLE_RATE_LIMIT=2)
class RateLimitTestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create(email='rl@example.com', first_name='R', last_name='L')
        self.product = Product.objects.create(
            name='Cap', price=Decimal('12.00'), stock=4, category=Product.Category.FASHION
        )
        self.url = f'/users/{self.user.id}/saved-products'
        self.redis = MagicMock()
        self.redis.ttl.return_value = 42
        patcher = patch('core.rate_limiting.get_redis_client', return_value=self.redis)
        patcher.start()
        self.addCleanup(patcher.stop)

    def toggle(self):
        return self.client.post(self.url, {'productId': str(self.product.id)}, format='json')

    def test_requests_under_limit_pass_with_headers(self):
        self.redis.incr.return_value = 1

        response = self.toggle()

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['X-RateLimit-Limit'], '2')
        self.assertEqual(response['X-RateLimit-Remaining'], '1')
        self.redis.expire.assert_called_once()
        key = self.redis.incr.call_args[0][0]
        self.assertIn(str(self.user.id), key)

    def test_requests_over_limit_get_429(self):
        self.redis.incr.return_value = 3

        response = self.toggle()

        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['Retry-After'], '42')
        self.assertFalse(self.user.saved_products.exists())

    def test_reads_are_not_counted(self):
        response = self.client.get(self.url)

        self.assertEqual(response.status_code, 200)
        self.redis.incr.assert_not_called()

    def test_redis_errors_fail_open(self):
        self.redis.incr.side_effect = redis.ConnectionError('down')

        response = self.toggle()

        self.assertEqual(response.status_code, 200)


class ErrorShapeTestCase(APITestCase):

    def test_not_found_body(self):
        response = self.client.get(f'/orders/{uuid.uuid4()}')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Not Found')

    def test_health_check(self):
        response = self.client.get('/health')
        self.assertEqual(response.json(), {'status': 'healthy', 'service': 'marketplace-api'})
