"""
Tests for users, preferences and the saved-products toggle.
"""
import threading
import uuid
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from products.models import Product
from users.models import User, Preference
from users.services import (
    ProductNotFoundError,
    UserNotFoundError,
    get_saved_products,
    toggle_saved_product,
)


class SavedProductToggleTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create(email='saver@example.com', first_name='Sam', last_name='Lee')
        self.product = Product.objects.create(
            name='Desk Lamp', price=Decimal('30.00'), stock=3,
            category=Product.Category.HOME_INTERIOR
        )
        self.other = Product.objects.create(
            name='Blender', price=Decimal('80.00'), stock=1,
            category=Product.Category.KITCHENWARE
        )

    def test_toggle_adds_unsaved_product(self):
        saved = toggle_saved_product(self.user.id, self.product.id)

        self.assertEqual(list(saved), [self.product])
        self.assertTrue(self.user.saved_products.filter(pk=self.product.pk).exists())

    def test_toggle_twice_restores_original_membership(self):
        self.user.saved_products.add(self.other)

        toggle_saved_product(self.user.id, self.product.id)
        saved = toggle_saved_product(self.user.id, self.product.id)

        self.assertEqual(list(saved), [self.other])

    def test_toggle_removes_saved_product(self):
        self.user.saved_products.add(self.product, self.other)

        saved = toggle_saved_product(self.user.id, self.product.id)

        self.assertEqual(list(saved), [self.other])

    def test_edge_is_never_duplicated(self):
        SavedProduct = User.saved_products.through
        for _ in range(5):
            toggle_saved_product(self.user.id, self.product.id)

        self.assertEqual(
            SavedProduct.objects.filter(user_id=self.user.pk, product_id=self.product.pk).count(),
            1
        )

    def test_toggle_unknown_user(self):
        with self.assertRaises(UserNotFoundError):
            toggle_saved_product(uuid.uuid4(), self.product.id)

    def test_toggle_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            toggle_saved_product(self.user.id, uuid.uuid4())
        self.assertFalse(self.user.saved_products.exists())

    def test_get_saved_products(self):
        self.user.saved_products.add(self.product)
        self.assertEqual(list(get_saved_products(self.user.id)), [self.product])

        with self.assertRaises(UserNotFoundError):
            get_saved_products(uuid.uuid4())


class SavedProductsApiTestCase(APITestCase):

    def setUp(self):
        self.user = User.objects.create(email='api@example.com', first_name='Api', last_name='User')
        self.product = Product.objects.create(
            name='Sneakers', price=Decimal('60.00'), stock=2,
            category=Product.Category.FASHION
        )
        self.url = f'/users/{self.user.id}/saved-products'

    def test_toggle_round_trip(self):
        response = self.client.post(self.url, {'productId': str(self.product.id)}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([p['id'] for p in response.data], [str(self.product.id)])

        response = self.client.get(self.url)
        self.assertEqual(len(response.data), 1)

        response = self.client.post(self.url, {'productId': str(self.product.id)}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])

    def test_unknown_user_returns_404(self):
        url = f'/users/{uuid.uuid4()}/saved-products'

        self.assertEqual(self.client.get(url).status_code, 404)
        response = self.client.post(url, {'productId': str(self.product.id)}, format='json')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Not Found')

    def test_malformed_product_id_returns_400(self):
        response = self.client.post(self.url, {'productId': 'nope'}, format='json')
        self.assertEqual(response.status_code, 400)


class UserApiTestCase(APITestCase):

    def test_create_user_with_preference(self):
        body = {
            'email': 'new@example.com',
            'firstName': 'New',
            'lastName': 'Member',
            'address': '1 Market Street',
            'preference': {'receiveEmail': True},
        }
        response = self.client.post('/users', body, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['preference'], {'receiveEmail': True})
        user = User.objects.get(email='new@example.com')
        self.assertTrue(user.preference.receive_email)

    def test_create_user_without_preference_gets_default(self):
        body = {'email': 'plain@example.com', 'firstName': 'Plain', 'lastName': 'User'}
        response = self.client.post('/users', body, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertFalse(Preference.objects.get(user__email='plain@example.com').receive_email)

    def test_duplicate_email_returns_400(self):
        User.objects.create(email='dup@example.com', first_name='A', last_name='B')
        body = {'email': 'dup@example.com', 'firstName': 'C', 'lastName': 'D'}

        response = self.client.post('/users', body, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(User.objects.filter(email='dup@example.com').count(), 1)

    def test_patch_updates_nested_preference(self):
        user = User.objects.create(email='patch@example.com', first_name='Pat', last_name='Ch')
        Preference.objects.create(user=user, receive_email=False)

        response = self.client.patch(
            f'/users/{user.id}',
            {'firstName': 'Patricia', 'preference': {'receiveEmail': True}},
            format='json'
        )

        self.assertEqual(response.status_code, 200)
        user.refresh_from_db()
        self.assertEqual(user.first_name, 'Patricia')
        self.assertTrue(user.preference.receive_email)

    def test_delete_cascades_preference(self):
        user = User.objects.create(email='bye@example.com', first_name='Bye', last_name='Now')
        Preference.objects.create(user=user)

        response = self.client.delete(f'/users/{user.id}')

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Preference.objects.exists())

    def test_list_users_offset_limit_and_order(self):
        base = timezone.now()
        for i in range(3):
            user = User.objects.create(email=f'u{i}@example.com', first_name='U', last_name='Ser')
            User.objects.filter(pk=user.pk).update(created_at=base + timedelta(minutes=i))

        response = self.client.get('/users', {'order': 'oldest', 'offset': 1, 'limit': 1})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([u['email'] for u in response.data], ['u1@example.com'])

    def test_list_users_rejects_bad_limit(self):
        response = self.client.get('/users', {'limit': 'ten'})
        self.assertEqual(response.status_code, 400)

    def test_user_orders(self):
        user = User.objects.create(email='orders@example.com', first_name='O', last_name='R')

        response = self.client.get(f'/users/{user.id}/orders')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, [])
        self.assertEqual(self.client.get(f'/users/{uuid.uuid4()}/orders').status_code, 404)


class ConcurrentToggleTestCase(TransactionTestCase):
    """
    Saved-product toggles that race on one (user, product) pair.
    Uses TransactionTestCase so each toggle commits on its own.
    """

    def setUp(self):
        self.user = User.objects.create(email='race@example.com', first_name='Ra', last_name='Ce')
        self.product = Product.objects.create(
            name='Headphones', price=Decimal('99.00'), stock=5,
            category=Product.Category.ELECTRONICS
        )
        self.SavedProduct = User.saved_products.through

    def edge_count(self):
        return self.SavedProduct.objects.filter(
            user_id=self.user.pk, product_id=self.product.pk
        ).count()

    def test_concurrent_toggles_keep_at_most_one_edge(self):
        """
        Given: A user who has not saved the product
        When: 5 toggles for the same pair run concurrently
        Then: Every toggle succeeds and exactly one edge remains
        """
        errors = []
        lock = threading.Lock()

        def toggle():
            try:
                toggle_saved_product(self.user.id, self.product.id)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=toggle) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertEqual(self.edge_count(), 1)

    def test_product_deleted_before_commit_is_not_found(self):
        """
        Given: The product disappears after the toggle checked it
        When: The edge insert reaches commit
        Then: The foreign key failure surfaces as ProductNotFoundError
        """
        insert_edge = self.SavedProduct.objects.bulk_create

        def delete_product_then_insert(*args, **kwargs):
            Product.objects.filter(pk=self.product.pk).delete()
            return insert_edge(*args, **kwargs)

        with patch.object(self.SavedProduct.objects, 'bulk_create', side_effect=delete_product_then_insert):
            with self.assertRaises(ProductNotFoundError):
                toggle_saved_product(self.user.id, self.product.id)

        self.assertEqual(self.edge_count(), 0)
