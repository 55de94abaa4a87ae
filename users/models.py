"""
User Models - marketplace members, their notification preferences and
saved products.

Preference is created in the same transaction as its User and removed with it.
"""
import uuid

from django.db import models

from products.models import Product


class User(models.Model):
    """
    Marketplace member. Not an authentication principal.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(
        unique=True,
        help_text="Contact email, unique across users"
    )
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    address = models.CharField(max_length=300, blank=True, default='')
    saved_products = models.ManyToManyField(
        Product,
        related_name='saved_by',
        blank=True,
        help_text="Products this user has saved"
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.first_name} {self.last_name} <{self.email}>"


class Preference(models.Model):
    """
    Notification preferences, exactly one per user.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='preference'
    )
    receive_email = models.BooleanField(
        default=False,
        help_text="Whether the user receives order emails"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Preference'
        verbose_name_plural = 'Preferences'

    def __str__(self):
        return f"Preferences for {self.user.email}"
