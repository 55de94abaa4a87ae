"""
Serializers for product models.
Wire field names are camelCase; model fields stay snake_case.
"""
from decimal import Decimal

from rest_framework import serializers
from .models import Product


class ProductSerializer(serializers.ModelSerializer):
    """Full product representation used for create, update and detail."""
    price = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.00'),
        coerce_to_string=False
    )
    stock = serializers.IntegerField(min_value=0, required=False)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'description', 'category', 'price', 'stock',
            'createdAt', 'updatedAt'
        ]
        read_only_fields = ['id']

