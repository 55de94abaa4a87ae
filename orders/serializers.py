"""
Serializers for order models.
"""
from rest_framework import serializers

from .models import Order, OrderItem
from .services import calculate_order_total


class OrderItemSerializer(serializers.ModelSerializer):
    """Line item with its snapshot price."""
    productId = serializers.UUIDField(source='product_id', read_only=True)
    unitPrice = serializers.DecimalField(
        source='unit_price',
        max_digits=10,
        decimal_places=2,
        coerce_to_string=False,
        read_only=True
    )
    subtotal = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        coerce_to_string=False,
        read_only=True
    )

    class Meta:
        model = OrderItem
        fields = ['id', 'productId', 'quantity', 'unitPrice', 'subtotal']


class OrderItemCreateSerializer(serializers.Serializer):
    """Serializer for order items in an order creation request."""
    productId = serializers.UUIDField(source='product_id')
    quantity = serializers.IntegerField(min_value=1)


class OrderSerializer(serializers.ModelSerializer):
    """
    Order with nested items and a total computed from snapshot prices.
    Expects ``items`` to be prefetched.
    """
    userId = serializers.UUIDField(source='user_id', read_only=True)
    orderItems = OrderItemSerializer(source='items', many=True, read_only=True)
    total = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'userId', 'status', 'orderItems', 'total',
            'createdAt', 'updatedAt'
        ]

    def get_total(self, obj):
        return calculate_order_total(obj.items.all())


class OrderListSerializer(serializers.ModelSerializer):
    """Compact order representation for list endpoints."""
    userId = serializers.UUIDField(source='user_id', read_only=True)
    itemCount = serializers.IntegerField(source='item_count', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Order
        fields = ['id', 'userId', 'status', 'itemCount', 'createdAt']


class OrderCreateSerializer(serializers.Serializer):
    """
    Serializer for creating orders via POST /orders

    Request format:
    {
        "userId": "5a1f...",
        "orderItems": [
            {"productId": "0c2e...", "quantity": 2},
            {"productId": "9b7d...", "quantity": 1}
        ]
    }
    """
    userId = serializers.UUIDField(source='user_id')
    orderItems = OrderItemCreateSerializer(source='order_items', many=True)

    def validate_orderItems(self, value):
        if not value:
            raise serializers.ValidationError("At least one item is required")
        return value


class OrderUpdateSerializer(serializers.ModelSerializer):
    """Scalar order fields editable after creation."""

    class Meta:
        model = Order
        fields = ['status']
