"""
User Service Layer - saved-products toggle and atomic profile writes.

The toggle is a conditional write: the membership check and the
connect/disconnect happen in one transaction keyed on current membership.
"""
import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from core.exceptions import NotFoundError
from products.models import Product
from .models import User, Preference

logger = logging.getLogger(__name__)


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


def get_saved_products(user_id) -> QuerySet:
    """Return the saved products of an existing user."""
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise UserNotFoundError(user_id)
    return user.saved_products.order_by('name', 'id')


def toggle_saved_product(user_id, product_id) -> QuerySet:
    """
    Flip membership of a product in a user's saved set.

    Removes the product if saved, adds it otherwise, and returns the updated
    saved set. Two toggles in a row restore the original membership.

    Raises:
        UserNotFoundError: If the user does not exist
        ProductNotFoundError: If adding a product that does not exist,
            including one deleted before the toggle commits
    """
    SavedProduct = User.saved_products.through
    adding = False

    try:
        with transaction.atomic():
            # Serializes toggles for one user on backends with row locks
            user = User.objects.select_for_update().filter(pk=user_id).first()
            if user is None:
                raise UserNotFoundError(user_id)

            removed, _ = SavedProduct.objects.filter(
                user_id=user.pk, product_id=product_id
            ).delete()

            if not removed:
                adding = True
                # Holds off a concurrent delete of the product until commit
                if Product.objects.select_for_update().filter(pk=product_id).first() is None:
                    raise ProductNotFoundError(product_id)
                # A concurrent toggle may have inserted the edge already
                SavedProduct.objects.bulk_create(
                    [SavedProduct(user_id=user.pk, product_id=product_id)],
                    ignore_conflicts=True
                )
    except IntegrityError:
        # Foreign keys may only be checked at commit; the locked user row
        # leaves the product reference as the one that can fail
        if adding:
            logger.warning(f"Product {product_id} vanished while user {user_id} saved it")
            raise ProductNotFoundError(product_id)
        raise

    if adding:
        logger.info(f"User {user.pk} saved product {product_id}")
    else:
        logger.info(f"User {user.pk} unsaved product {product_id}")

    return user.saved_products.order_by('name', 'id')


@transaction.atomic
def create_user(user_fields: dict, preference_fields: Optional[dict] = None) -> User:
    """Create a user together with its preference record."""
    user = User.objects.create(**user_fields)
    Preference.objects.create(user=user, **(preference_fields or {}))
    logger.info(f"Created user {user.pk}")
    return user


@transaction.atomic
def update_user(user: User, user_fields: dict, preference_fields: Optional[dict] = None) -> User:
    """Update user fields and, when given, the owned preference record."""
    for field, value in user_fields.items():
        setattr(user, field, value)
    user.save()

    if preference_fields:
        preference, _ = Preference.objects.get_or_create(user=user)
        for field, value in preference_fields.items():
            setattr(preference, field, value)
        preference.save()
    return user
