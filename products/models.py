"""
Product Models - catalog entries with price and stock.

Stock is the only field mutated concurrently; it is decremented by order
creation and must never go below zero.
"""
import uuid
from decimal import Decimal

from django.db import models
from django.core.validators import MinValueValidator


class Product(models.Model):
    """
    Product entity representing items available for sale.
    """

    class Category(models.TextChoices):
        FASHION = 'FASHION', 'Fashion'
        BEAUTY = 'BEAUTY', 'Beauty'
        SPORTS = 'SPORTS', 'Sports'
        ELECTRONICS = 'ELECTRONICS', 'Electronics'
        HOME_INTERIOR = 'HOME_INTERIOR', 'Home Interior'
        HOUSEHOLD_SUPPLIES = 'HOUSEHOLD_SUPPLIES', 'Household Supplies'
        KITCHENWARE = 'KITCHENWARE', 'Kitchenware'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=200,
        db_index=True,
        help_text="Product name for display"
    )
    description = models.TextField(
        blank=True,
        default='',
        help_text="Optional product description"
    )
    category = models.CharField(
        max_length=30,
        choices=Category.choices,
        db_index=True,
        help_text="Product category"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        help_text="Current unit price"
    )
    stock = models.PositiveIntegerField(
        default=0,
        help_text="Units available for ordering"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['-created_at']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name='product_stock_non_negative'
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name='product_price_non_negative'
            ),
        ]
        indexes = [
            models.Index(fields=['category', 'created_at']),
            models.Index(fields=['price']),
        ]

    def __str__(self):
        return f"{self.name} (${self.price}, {self.stock} in stock)"

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock == 0
