"""
Tests for product endpoints and stock constraints.
"""
import uuid
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework.test import APITestCase

from orders.services import create_order
from products.models import Product
from users.models import User


class ProductModelTestCase(TestCase):

    def test_stock_cannot_go_negative(self):
        product = Product.objects.create(
            name='Kettle', price=Decimal('20.00'), stock=1,
            category=Product.Category.KITCHENWARE
        )

        with self.assertRaises(IntegrityError), transaction.atomic():
            Product.objects.filter(pk=product.pk).update(stock=-1)

    def test_out_of_stock(self):
        product = Product(name='Empty', price=Decimal('1.00'), stock=0)
        self.assertTrue(product.is_out_of_stock)


class ProductApiTestCase(APITestCase):

    def setUp(self):
        self.cheap = Product.objects.create(
            name='Socks', price=Decimal('5.00'), stock=10, category=Product.Category.FASHION
        )
        self.mid = Product.objects.create(
            name='Lipstick', price=Decimal('20.00'), stock=10, category=Product.Category.BEAUTY
        )
        self.pricey = Product.objects.create(
            name='Jacket', price=Decimal('120.00'), stock=2, category=Product.Category.FASHION
        )

    def test_list_ordered_by_price(self):
        response = self.client.get('/products', {'order': 'priceLowest'})
        self.assertEqual([p['name'] for p in response.data], ['Socks', 'Lipstick', 'Jacket'])

        response = self.client.get('/products', {'order': 'priceHighest', 'limit': 2})
        self.assertEqual([p['name'] for p in response.data], ['Jacket', 'Lipstick'])

    def test_list_filtered_by_category(self):
        response = self.client.get('/products', {'category': 'FASHION', 'order': 'priceLowest'})
        self.assertEqual([p['name'] for p in response.data], ['Socks', 'Jacket'])

    def test_create_product(self):
        body = {
            'name': 'Yoga Mat',
            'description': 'Non-slip',
            'category': 'SPORTS',
            'price': '35.50',
            'stock': 12,
        }
        response = self.client.post('/products', body, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(Product.objects.get(name='Yoga Mat').stock, 12)

    def test_create_product_rejects_negative_stock_and_unknown_category(self):
        body = {'name': 'Bad', 'category': 'TOYS', 'price': '1.00', 'stock': -1}
        response = self.client.post('/products', body, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('category', response.data['detail'])
        self.assertIn('stock', response.data['detail'])

    def test_patch_and_delete_product(self):
        response = self.client.patch(f'/products/{self.mid.id}', {'price': '25.00'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.mid.refresh_from_db()
        self.assertEqual(self.mid.price, Decimal('25.00'))

        response = self.client.delete(f'/products/{self.mid.id}')
        self.assertEqual(response.status_code, 204)
        self.assertFalse(Product.objects.filter(pk=self.mid.pk).exists())

    def test_missing_product_returns_404(self):
        response = self.client.get(f'/products/{uuid.uuid4()}')
        self.assertEqual(response.status_code, 404)

    def test_delete_product_with_orders_returns_409(self):
        user = User.objects.create(email='p@example.com', first_name='P', last_name='Q')
        create_order(user.id, [{'product_id': self.cheap.id, 'quantity': 1}])

        response = self.client.delete(f'/products/{self.cheap.id}')

        self.assertEqual(response.status_code, 409)
        self.assertTrue(Product.objects.filter(pk=self.cheap.pk).exists())
