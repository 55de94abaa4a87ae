"""
Order Service Layer - Atomic order creation logic.

Order creation pipeline:
1. Validate the requested items and look up the user
2. Snapshot current product prices onto unsaved line items
3. Check stock sufficiency against the aggregated demand (fail fast)
4. Commit order, line items and stock decrements in one transaction;
   each decrement re-asserts sufficiency with a conditional UPDATE
5. After commit, queue the confirmation task
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import F

from core.exceptions import BusinessRuleViolation, ValidationFailed
from products.models import Product
from users.models import User
from users.services import UserNotFoundError
from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class OrderValidationError(ValidationFailed):
    """Raised when order validation fails."""
    pass


@dataclass
class StockShortfall:
    product_id: uuid.UUID
    requested: int
    available: int

    def __str__(self):
        return (
            f"product {self.product_id}: requested {self.requested}, "
            f"available {self.available}"
        )


class InsufficientStockError(BusinessRuleViolation):
    """Raised when stock cannot cover one or more requested quantities."""
    error = 'Insufficient Stock'

    def __init__(self, shortfalls: List[StockShortfall]):
        self.shortfalls = shortfalls
        super().__init__(
            "Insufficient stock for " + "; ".join(str(s) for s in shortfalls)
        )

    def as_detail(self):
        return {
            'message': 'Insufficient stock',
            'items': [
                {
                    'productId': str(s.product_id),
                    'requested': s.requested,
                    'available': s.available,
                }
                for s in self.shortfalls
            ],
        }


@dataclass
class OrderDraft:
    """
    Unpersisted order aggregate produced by assemble_order.

    ``items`` are unsaved OrderItem instances carrying snapshot prices.
    ``products`` maps every product id found during assembly to its record.
    """
    order: Order
    items: List[OrderItem] = field(default_factory=list)
    products: Dict[uuid.UUID, Product] = field(default_factory=dict)

    def demand(self) -> Dict[uuid.UUID, int]:
        return aggregate_demand(
            (item.product_id, item.quantity) for item in self.items
        )


# =============================================================================
# Inventory Checker
# =============================================================================

def aggregate_demand(pairs: Iterable) -> Dict[uuid.UUID, int]:
    """
    Sum requested quantities per product.

    Args:
        pairs: Iterable of (product_id, quantity)

    Returns:
        Dict of product_id -> total quantity, in first-seen order
    """
    demand = OrderedDict()
    for product_id, quantity in pairs:
        demand[product_id] = demand.get(product_id, 0) + quantity
    return demand


def find_stock_shortfalls(demand: Dict[uuid.UUID, int],
                          products: Dict[uuid.UUID, Product]) -> List[StockShortfall]:
    """
    List every demand the given product records cannot satisfy.

    A product id with no record counts as zero stock.
    """
    shortfalls = []
    for product_id, requested in demand.items():
        product = products.get(product_id)
        available = product.stock if product is not None else 0
        if available < requested:
            shortfalls.append(StockShortfall(product_id, requested, available))
    return shortfalls


def has_sufficient_stock(demand: Dict[uuid.UUID, int],
                         products: Dict[uuid.UUID, Product]) -> bool:
    """True iff every product's stock covers its demand."""
    return not find_stock_shortfalls(demand, products)


# =============================================================================
# Order Assembler
# =============================================================================

def _coerce_product_id(idx: int, value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise OrderValidationError(f"Item {idx}: malformed productId {value!r}")


def validate_order_items(items: List[Dict]) -> List[Dict]:
    """
    Validate order items structure.

    Args:
        items: List of dicts with 'product_id' and 'quantity'

    Returns:
        Items with product ids normalized to UUID

    Raises:
        OrderValidationError: If validation fails
    """
    if not items:
        raise OrderValidationError("Order must contain at least one item")

    cleaned = []
    for idx, item in enumerate(items):
        if 'product_id' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'productId'")
        if 'quantity' not in item:
            raise OrderValidationError(f"Item {idx}: missing 'quantity'")

        quantity = item['quantity']
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise OrderValidationError(f"Item {idx}: quantity must be a positive integer")

        cleaned.append({
            'product_id': _coerce_product_id(idx, item['product_id']),
            'quantity': quantity,
        })
    return cleaned


def assemble_order(user_id, items: List[Dict]) -> OrderDraft:
    """
    Build an unsaved order and its line items from a request.

    Each line item captures the product's current price; later price
    changes never affect it. Products that do not exist are left out of
    ``draft.products`` so the stock check rejects them.

    Raises:
        OrderValidationError: If items validation fails
        UserNotFoundError: If the user does not exist
    """
    items = validate_order_items(items)

    try:
        user = User.objects.get(pk=user_id)
    except (User.DoesNotExist, DjangoValidationError):
        raise UserNotFoundError(user_id)

    product_ids = {item['product_id'] for item in items}
    products = Product.objects.in_bulk(product_ids)

    draft = OrderDraft(order=Order(user=user), products=products)
    for item in items:
        product = products.get(item['product_id'])
        draft.items.append(OrderItem(
            product_id=item['product_id'],
            quantity=item['quantity'],
            unit_price=product.price if product is not None else None
        ))
    return draft


# =============================================================================
# Transaction Coordinator
# =============================================================================

def commit_order(draft: OrderDraft) -> Order:
    """
    Persist an assembled order as one atomic unit.

    Inserts the order, decrements each product's stock by its summed
    demand, then inserts the line items. Each decrement is a conditional
    UPDATE that only matches while stock covers the demand, so a product
    that no longer exists fails the same way. If any decrement matches no
    row the transaction rolls back and nothing is persisted.

    Raises:
        InsufficientStockError: If stock no longer covers a demand
    """
    demand = draft.demand()

    with transaction.atomic():
        order = draft.order
        order.save(force_insert=True)

        # Stable lock order across concurrent orders
        for product_id in sorted(demand, key=str):
            quantity = demand[product_id]
            updated = Product.objects.filter(
                pk=product_id,
                stock__gte=quantity
            ).update(stock=F('stock') - quantity)

            if not updated:
                current = Product.objects.filter(pk=product_id).values_list('stock', flat=True).first()
                raise InsufficientStockError([
                    StockShortfall(product_id, quantity, current or 0)
                ])

            logger.debug(f"Order {order.id}: deducted {quantity} of product {product_id}")

        # Unknown products already failed the decrement above
        for item in draft.items:
            item.order = order
        OrderItem.objects.bulk_create(draft.items)

        transaction.on_commit(lambda: _queue_confirmation(order.id))

    logger.info(f"Order {order.id} committed: {len(draft.items)} items for user {order.user_id}")
    return order


def _queue_confirmation(order_id):
    try:
        from .tasks import send_order_confirmation
        send_order_confirmation.delay(str(order_id))
        logger.info(f"Triggered confirmation task for order {order_id}")
    except Exception as e:
        # Don't fail the order if task queuing fails
        logger.error(f"Failed to queue confirmation task for order {order_id}: {e}")


# =============================================================================
# Order Total Calculator
# =============================================================================

def calculate_order_total(items: Iterable[OrderItem]) -> Decimal:
    """Sum of snapshot unit price times quantity over the order's items."""
    return sum((item.unit_price * item.quantity for item in items), Decimal('0.00'))


# =============================================================================
# Workflow
# =============================================================================

def create_order(user_id, items: List[Dict]) -> Order:
    """
    Create an order: assemble, check stock, then commit atomically.

    Args:
        user_id: ID of the ordering user
        items: List of dicts with 'product_id' and 'quantity'

    Returns:
        The persisted Order

    Raises:
        OrderValidationError: If items validation fails
        UserNotFoundError: If the user does not exist
        InsufficientStockError: If stock cannot cover the order, either at
            check time or at commit time
    """
    draft = assemble_order(user_id, items)

    shortfalls = find_stock_shortfalls(draft.demand(), draft.products)
    if shortfalls:
        logger.warning(f"Order for user {user_id} rejected: {len(shortfalls)} product(s) short")
        raise InsufficientStockError(shortfalls)

    return commit_order(draft)
