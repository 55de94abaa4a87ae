"""
Order API Views.

Implements:
- GET /orders - List orders
- POST /orders - Create order with atomic transaction
- GET /orders/{id} - Order detail with items and computed total
- PATCH /orders/{id} - Update order status
- DELETE /orders/{id} - Delete an order (stock is not restored)
"""
import logging

from rest_framework import generics, status
from rest_framework.response import Response

from core.rate_limiting import RateLimitMixin
from .models import Order
from .serializers import (
    OrderSerializer,
    OrderListSerializer,
    OrderCreateSerializer,
    OrderUpdateSerializer,
)
from .services import create_order

logger = logging.getLogger(__name__)


class OrderListCreateView(RateLimitMixin, generics.ListCreateAPIView):
    """
    GET: List all orders, newest first
    POST: Create a new order with atomic transaction handling

    Request Body (POST):
    {
        "userId": "5a1f...",
        "orderItems": [
            {"productId": "0c2e...", "quantity": 2}
        ]
    }
    """
    rate_limit_setting = 'ORDER_RATE_LIMIT'

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return OrderCreateSerializer
        return OrderListSerializer

    def get_queryset(self):
        return Order.objects.prefetch_related('items').order_by('-created_at')

    def create(self, request, *args, **kwargs):
        """
        Create order with atomic transaction handling.

        Returns:
            - 201: Order created, stock decremented
            - 400: Validation error
            - 404: User not found
            - 409: Insufficient stock, nothing persisted
        """
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user_id = serializer.validated_data['user_id']
        items = serializer.validated_data['order_items']

        order = create_order(user_id, items)

        # Fetch fresh order with its items
        order = Order.objects.prefetch_related('items').get(pk=order.pk)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET: Retrieve order with items and total
    PATCH: Update order status
    DELETE: Delete order and its items
    """
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_serializer_class(self):
        if self.request.method == 'PATCH':
            return OrderUpdateSerializer
        return OrderSerializer

    def get_queryset(self):
        return Order.objects.prefetch_related('items')

    def update(self, request, *args, **kwargs):
        instance = self.get_object()
        serializer = OrderUpdateSerializer(instance, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        logger.info(f"Order {instance.pk} updated: status={instance.status}")
        return Response(OrderSerializer(self.get_object()).data)
