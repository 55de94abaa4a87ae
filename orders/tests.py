"""
Tests for order transaction logic.

Test Cases:
1. Order created with sufficient stock, stock decremented exactly
2. Order rejected with insufficient stock, nothing persisted
3. Conditional decrement catches stock that changed after the check
4. Atomic rollback on persistence errors
5. Totals derived from snapshot prices
6. Concurrent orders never oversell
"""
import threading
import uuid
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.db import DatabaseError, connection
from django.test import SimpleTestCase, TestCase, TransactionTestCase
from rest_framework.test import APITestCase

from products.models import Product
from users.models import User, Preference
from users.services import UserNotFoundError
from orders.models import Order, OrderItem
from orders.services import (
    InsufficientStockError,
    OrderValidationError,
    aggregate_demand,
    assemble_order,
    calculate_order_total,
    commit_order,
    create_order,
    find_stock_shortfalls,
    has_sufficient_stock,
)


def make_user(email='buyer@example.com', receive_email=False):
    user = User.objects.create(email=email, first_name='Test', last_name='Buyer')
    Preference.objects.create(user=user, receive_email=receive_email)
    return user


def make_product(name, price, stock, category=Product.Category.ELECTRONICS):
    return Product.objects.create(name=name, price=Decimal(price), stock=stock, category=category)


class InventoryCheckerTestCase(SimpleTestCase):
    """The sufficiency check is a pure function of demand and records."""

    def setUp(self):
        self.p1 = Product(id=uuid.uuid4(), name='A', price=Decimal('1.00'), stock=5)
        self.p2 = Product(id=uuid.uuid4(), name='B', price=Decimal('2.00'), stock=0)
        self.products = {self.p1.id: self.p1, self.p2.id: self.p2}

    def test_sufficient_when_every_demand_is_covered(self):
        self.assertTrue(has_sufficient_stock({self.p1.id: 5}, self.products))

    def test_insufficient_when_any_demand_exceeds_stock(self):
        demand = {self.p1.id: 1, self.p2.id: 1}
        self.assertFalse(has_sufficient_stock(demand, self.products))

        shortfalls = find_stock_shortfalls(demand, self.products)
        self.assertEqual(len(shortfalls), 1)
        self.assertEqual(shortfalls[0].product_id, self.p2.id)
        self.assertEqual(shortfalls[0].available, 0)

    def test_missing_product_fails_closed(self):
        missing = uuid.uuid4()
        shortfalls = find_stock_shortfalls({missing: 1}, self.products)
        self.assertEqual(shortfalls[0].product_id, missing)
        self.assertEqual(shortfalls[0].requested, 1)
        self.assertEqual(shortfalls[0].available, 0)

    def test_demand_is_summed_per_product(self):
        demand = aggregate_demand([(self.p1.id, 2), (self.p2.id, 1), (self.p1.id, 4)])
        self.assertEqual(demand, {self.p1.id: 6, self.p2.id: 1})
        self.assertFalse(has_sufficient_stock({self.p1.id: demand[self.p1.id]}, self.products))


class OrderTotalTestCase(SimpleTestCase):

    def test_total_is_sum_of_price_times_quantity(self):
        items = [
            OrderItem(quantity=5, unit_price=Decimal('10.00')),
            OrderItem(quantity=3, unit_price=Decimal('25.00')),
            OrderItem(quantity=1, unit_price=Decimal('0.99')),
        ]
        self.assertEqual(calculate_order_total(items), Decimal('125.99'))

    def test_total_of_no_items_is_zero(self):
        self.assertEqual(calculate_order_total([]), Decimal('0.00'))


class OrderTransactionTestCase(TestCase):
    """Test cases for order transaction logic."""

    def setUp(self):
        """Set up test data."""
        self.user = make_user()
        self.product1 = make_product('Test Product 1', '10.00', 100)
        self.product2 = make_product('Test Product 2', '25.00', 50)
        self.product3 = make_product('Test Product 3', '15.50', 10)
        self.bystander = make_product('Untouched Product', '5.00', 7)

    def test_order_created_with_sufficient_stock(self):
        """
        Given: Products with sufficient stock
        When: Creating an order within stock limits
        Then: Order and items persist, stock drops by exactly the quantities
        """
        items = [
            {'product_id': self.product1.id, 'quantity': 5},
            {'product_id': self.product2.id, 'quantity': 3}
        ]

        order = create_order(self.user.id, items)

        self.assertEqual(order.user_id, self.user.id)
        self.assertEqual(order.status, Order.Status.PENDING)
        self.assertEqual(order.items.count(), 2)
        self.assertEqual(calculate_order_total(order.items.all()), Decimal('125.00'))

        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.bystander.refresh_from_db()
        self.assertEqual(self.product1.stock, 95)
        self.assertEqual(self.product2.stock, 47)
        self.assertEqual(self.bystander.stock, 7)

    def test_line_items_snapshot_current_price(self):
        order = create_order(self.user.id, [{'product_id': self.product3.id, 'quantity': 2}])

        item = order.items.get()
        self.assertEqual(item.unit_price, Decimal('15.50'))
        self.assertEqual(item.subtotal, Decimal('31.00'))

    def test_total_unaffected_by_later_price_change(self):
        order = create_order(self.user.id, [
            {'product_id': self.product1.id, 'quantity': 2},
            {'product_id': self.product2.id, 'quantity': 1},
        ])

        Product.objects.filter(pk=self.product1.pk).update(price=Decimal('999.00'))
        Product.objects.filter(pk=self.product2.pk).update(price=Decimal('0.01'))

        order = Order.objects.prefetch_related('items').get(pk=order.pk)
        self.assertEqual(calculate_order_total(order.items.all()), Decimal('45.00'))

    def test_second_order_rejected_when_stock_runs_low(self):
        """
        Given: A product with stock 5
        When: Two orders of 3 units each
        Then: First succeeds leaving 2, second fails and stock stays 2
        """
        product = make_product('Five Left', '8.00', 5)

        create_order(self.user.id, [{'product_id': product.id, 'quantity': 3}])
        product.refresh_from_db()
        self.assertEqual(product.stock, 2)

        with self.assertRaises(InsufficientStockError) as context:
            create_order(self.user.id, [{'product_id': product.id, 'quantity': 3}])

        shortfall = context.exception.shortfalls[0]
        self.assertEqual(shortfall.product_id, product.id)
        self.assertEqual(shortfall.requested, 3)
        self.assertEqual(shortfall.available, 2)

        product.refresh_from_db()
        self.assertEqual(product.stock, 2)
        self.assertEqual(Order.objects.count(), 1)

    def test_no_stock_deduction_on_rejection(self):
        """
        Given: Insufficient stock for one item
        When: Order is rejected
        Then: No stock changes, no order or line item persisted
        """
        items = [
            {'product_id': self.product1.id, 'quantity': 5},
            {'product_id': self.product2.id, 'quantity': 10},
            {'product_id': self.product3.id, 'quantity': 20}  # Exceeds available
        ]

        with self.assertRaises(InsufficientStockError):
            create_order(self.user.id, items)

        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.product3.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)
        self.assertEqual(self.product2.stock, 50)
        self.assertEqual(self.product3.stock, 10)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)

    def test_order_with_exact_stock(self):
        create_order(self.user.id, [{'product_id': self.product3.id, 'quantity': 10}])

        self.product3.refresh_from_db()
        self.assertEqual(self.product3.stock, 0)

    def test_repeated_product_lines_use_summed_demand(self):
        items = [
            {'product_id': self.product3.id, 'quantity': 6},
            {'product_id': self.product3.id, 'quantity': 6},
        ]
        with self.assertRaises(InsufficientStockError):
            create_order(self.user.id, items)

        items[1]['quantity'] = 4
        order = create_order(self.user.id, items)

        self.assertEqual(order.items.count(), 2)
        self.product3.refresh_from_db()
        self.assertEqual(self.product3.stock, 0)

    def test_validation_error_empty_items(self):
        with self.assertRaises(OrderValidationError) as context:
            create_order(self.user.id, [])

        self.assertIn('at least one item', str(context.exception))

    def test_validation_error_invalid_quantity(self):
        for quantity in (0, -1, 1.5, True):
            with self.subTest(quantity=quantity):
                with self.assertRaises(OrderValidationError):
                    create_order(self.user.id, [{'product_id': self.product1.id, 'quantity': quantity}])

    def test_validation_error_malformed_product_id(self):
        with self.assertRaises(OrderValidationError) as context:
            create_order(self.user.id, [{'product_id': 'not-a-uuid', 'quantity': 1}])

        self.assertIn('malformed', str(context.exception))

    def test_order_unknown_user(self):
        with self.assertRaises(UserNotFoundError):
            create_order(uuid.uuid4(), [{'product_id': self.product1.id, 'quantity': 1}])

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.stock, 100)

    def test_order_unknown_product_is_insufficient(self):
        missing = uuid.uuid4()
        with self.assertRaises(InsufficientStockError) as context:
            create_order(self.user.id, [
                {'product_id': self.product1.id, 'quantity': 1},
                {'product_id': missing, 'quantity': 1},
            ])

        self.assertEqual([s.product_id for s in context.exception.shortfalls], [missing])
        self.assertEqual(Order.objects.count(), 0)


class TransactionCoordinatorTestCase(TestCase):
    """commit_order re-checks stock at write time and is all-or-nothing."""

    def setUp(self):
        self.user = make_user()
        self.plenty = make_product('Plenty', '4.00', 10)
        self.scarce = make_product('Scarce', '9.00', 5)

    def test_stock_taken_after_check_aborts_commit(self):
        draft = assemble_order(self.user.id, [{'product_id': self.scarce.id, 'quantity': 3}])
        self.assertTrue(has_sufficient_stock(draft.demand(), draft.products))

        # Another order drains stock between the check and the commit
        Product.objects.filter(pk=self.scarce.pk).update(stock=1)

        with self.assertRaises(InsufficientStockError) as context:
            commit_order(draft)

        self.assertEqual(context.exception.shortfalls[0].available, 1)
        self.scarce.refresh_from_db()
        self.assertEqual(self.scarce.stock, 1)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)

    def test_failed_decrement_rolls_back_other_decrements(self):
        draft = assemble_order(self.user.id, [
            {'product_id': self.plenty.id, 'quantity': 2},
            {'product_id': self.scarce.id, 'quantity': 6},
        ])

        with self.assertRaises(InsufficientStockError):
            commit_order(draft)

        self.plenty.refresh_from_db()
        self.scarce.refresh_from_db()
        self.assertEqual(self.plenty.stock, 10)
        self.assertEqual(self.scarce.stock, 5)
        self.assertEqual(Order.objects.count(), 0)

    def test_product_deleted_after_assembly_fails_closed(self):
        """
        Given: An order assembled for a product that is deleted before commit
        When: The order is committed
        Then: It is rejected as insufficient stock and nothing is persisted
        """
        draft = assemble_order(self.user.id, [
            {'product_id': self.plenty.id, 'quantity': 1},
            {'product_id': self.scarce.id, 'quantity': 1},
        ])
        gone_id = self.scarce.id
        self.scarce.delete()

        with self.assertRaises(InsufficientStockError) as context:
            commit_order(draft)

        shortfall = context.exception.shortfalls[0]
        self.assertEqual(shortfall.product_id, gone_id)
        self.assertEqual(shortfall.available, 0)
        self.plenty.refresh_from_db()
        self.assertEqual(self.plenty.stock, 10)
        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderItem.objects.count(), 0)

    def test_persistence_failure_rolls_back_everything(self):
        draft = assemble_order(self.user.id, [{'product_id': self.plenty.id, 'quantity': 2}])

        with patch.object(OrderItem.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(DatabaseError):
                commit_order(draft)

        self.plenty.refresh_from_db()
        self.assertEqual(self.plenty.stock, 10)
        self.assertEqual(Order.objects.count(), 0)

    def test_confirmation_email_sent_after_commit(self):
        user = make_user('mailme@example.com', receive_email=True)

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            order = create_order(user.id, [{'product_id': self.plenty.id, 'quantity': 2}])

        self.assertEqual(len(callbacks), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['mailme@example.com'])
        self.assertIn(str(order.id), mail.outbox[0].subject)
        self.assertIn('Total: $8.00', mail.outbox[0].body)

    def test_confirmation_email_skipped_without_opt_in(self):
        with self.captureOnCommitCallbacks(execute=True):
            create_order(self.user.id, [{'product_id': self.plenty.id, 'quantity': 1}])

        self.assertEqual(len(mail.outbox), 0)

    def test_no_confirmation_queued_for_rejected_order(self):
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(InsufficientStockError):
                create_order(self.user.id, [{'product_id': self.scarce.id, 'quantity': 50}])

        self.assertEqual(callbacks, [])


class OrderApiTestCase(APITestCase):

    def setUp(self):
        self.user = make_user()
        self.product = make_product('Keyboard', '45.00', 5)
        self.other = make_product('Mouse', '20.00', 3)

    def post_order(self, items, user_id=None):
        body = {
            'userId': str(user_id or self.user.id),
            'orderItems': items,
        }
        return self.client.post('/orders', body, format='json')

    def test_create_order_returns_201_with_items_and_total(self):
        response = self.post_order([
            {'productId': str(self.product.id), 'quantity': 2},
            {'productId': str(self.other.id), 'quantity': 1},
        ])

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['userId'], str(self.user.id))
        self.assertEqual(len(response.data['orderItems']), 2)
        self.assertEqual(response.data['total'], Decimal('110.00'))
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

    def test_insufficient_stock_returns_409(self):
        response = self.post_order([{'productId': str(self.product.id), 'quantity': 6}])

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 'Insufficient Stock')
        self.assertEqual(response.data['detail']['items'][0]['available'], 5)
        self.assertEqual(Order.objects.count(), 0)

    def test_malformed_bodies_return_400(self):
        bad_items = [
            [],
            [{'productId': str(self.product.id), 'quantity': 0}],
            [{'productId': 'abc', 'quantity': 1}],
            [{'quantity': 1}],
        ]
        for items in bad_items:
            with self.subTest(items=items):
                response = self.post_order(items)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.data['error'], 'Validation Error')

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_unknown_user_returns_404(self):
        response = self.post_order(
            [{'productId': str(self.product.id), 'quantity': 1}],
            user_id=uuid.uuid4()
        )
        self.assertEqual(response.status_code, 404)

    def test_get_order_merges_computed_total(self):
        order = create_order(self.user.id, [{'product_id': self.product.id, 'quantity': 3}])
        Product.objects.filter(pk=self.product.pk).update(price=Decimal('1.00'))

        response = self.client.get(f'/orders/{order.id}')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total'], Decimal('135.00'))
        self.assertEqual(response.data['orderItems'][0]['unitPrice'], Decimal('45.00'))

    def test_get_missing_order_returns_404(self):
        response = self.client.get(f'/orders/{uuid.uuid4()}')
        self.assertEqual(response.status_code, 404)

    def test_patch_order_status(self):
        order = create_order(self.user.id, [{'product_id': self.product.id, 'quantity': 1}])

        response = self.client.patch(f'/orders/{order.id}', {'status': 'COMPLETE'}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'COMPLETE')
        self.assertEqual(len(response.data['orderItems']), 1)

    def test_delete_order_does_not_restore_stock(self):
        order = create_order(self.user.id, [{'product_id': self.product.id, 'quantity': 2}])

        response = self.client.delete(f'/orders/{order.id}')

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Order.objects.exists())
        self.assertFalse(OrderItem.objects.exists())
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

    def test_list_orders(self):
        create_order(self.user.id, [{'product_id': self.product.id, 'quantity': 1}])
        create_order(self.user.id, [
            {'product_id': self.product.id, 'quantity': 1},
            {'product_id': self.other.id, 'quantity': 1},
        ])

        response = self.client.get('/orders')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 2)
        self.assertEqual(sorted(o['itemCount'] for o in response.data), [1, 2])

    def test_persistence_failure_returns_generic_500(self):
        with patch('orders.views.create_order', side_effect=DatabaseError('connection reset')):
            with self.assertLogs('core.exceptions', level='ERROR'):
                response = self.post_order([{'productId': str(self.product.id), 'quantity': 1}])

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['detail'], 'An unexpected error occurred')
        self.assertNotIn('connection reset', str(response.data))


class ConcurrentOrderTestCase(TransactionTestCase):
    """
    Concurrent order handling against one product.
    Uses TransactionTestCase so each thread commits on its own connection.
    """

    def setUp(self):
        self.user = make_user()
        self.product = make_product('Limited Stock Product', '50.00', 5)

    def _run_concurrently(self, count, quantity):
        results = []
        lock = threading.Lock()

        def place_order():
            try:
                create_order(self.user.id, [{'product_id': self.product.id, 'quantity': quantity}])
                outcome = 'created'
            except InsufficientStockError:
                outcome = 'rejected'
            except DatabaseError:
                outcome = 'failed'
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=place_order) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return results

    def test_concurrent_orders_never_oversell(self):
        """
        Given: 5 units in stock
        When: 10 concurrent orders of 1 unit each
        Then: Exactly 5 succeed, the other 5 are rejected, stock reaches 0
        """
        results = self._run_concurrently(count=10, quantity=1)

        self.assertEqual(len(results), 10)
        self.assertNotIn('failed', results)
        self.assertEqual(results.count('created'), 5)
        self.assertEqual(results.count('rejected'), 5)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 0)
        self.assertEqual(Order.objects.count(), 5)
        self.assertEqual(OrderItem.objects.count(), 5)

    def test_two_large_orders_only_one_succeeds(self):
        """
        Given: 5 units in stock
        When: 2 concurrent orders of 4 units each
        Then: Exactly one succeeds and 1 unit remains
        """
        results = self._run_concurrently(count=2, quantity=4)

        self.assertNotIn('failed', results)
        self.assertEqual(results.count('created'), 1)
        self.assertEqual(results.count('rejected'), 1)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 1)
        self.assertEqual(Order.objects.count(), 1)
