"""
Celery tasks for order processing.

Tasks:
    - send_order_confirmation: Email summary after an order commits
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)


def render_confirmation(order, total) -> str:
    items_summary = [
        f"  - {item.quantity}x {item.product.name} @ ${item.unit_price}"
        for item in order.items.all()
    ]
    return "\n".join([
        f"Order #{order.id}",
        f"Status: {order.status}",
        "",
        "Items:",
        *items_summary,
        "",
        f"Total: ${total}",
        f"Placed: {order.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
    ])


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=60,
    autoretry_for=(ConnectionError,),
    retry_backoff=True
)
def send_order_confirmation(self, order_id: str):
    """
    Email an order summary to the ordering user.

    Skipped when the user's preference does not allow email.

    Args:
        order_id: ID of the committed order

    Returns:
        Dict with confirmation details
    """
    from orders.models import Order
    from orders.services import calculate_order_total

    try:
        order = Order.objects.select_related('user__preference').prefetch_related(
            'items__product'
        ).get(pk=order_id)
    except Order.DoesNotExist:
        logger.error(f"Order #{order_id} not found for confirmation")
        return {'status': 'error', 'message': f'Order {order_id} not found'}

    preference = getattr(order.user, 'preference', None)
    if preference is None or not preference.receive_email:
        logger.info(f"Order #{order_id}: user {order.user_id} opted out of email, skipping")
        return {
            'status': 'skipped',
            'message': f'User {order.user_id} does not receive email'
        }

    total = calculate_order_total(order.items.all())
    send_mail(
        subject=f"Your order #{order.id} has been placed",
        message=render_confirmation(order, total),
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[order.user.email],
    )
    logger.info(f"Confirmation sent for order #{order.id} to {order.user.email}")

    return {
        'status': 'success',
        'order_id': str(order.id),
        'message': f'Confirmation sent for order {order_id}'
    }
