"""Fire-and-forget customer notifications."""

import logging
from django.db import transaction

logger = logging.getLogger(__name__)

TEMPLATES = {
    'payment_received': (
        'Payment Received',
        'Your payment for {quantity} {service} has been confirmed. We will start processing your order soon.',
    ),
    'order_processing': (
        'Order Approved',
        'Your order for {quantity} {service} has been approved and is now being processed.',
    ),
    'order_completed': (
        'Order Completed',
        'Your order for {quantity} {service} has been completed successfully.',
    ),
    'order_cancelled': (
        'Order Cancelled',
        'Your order for {quantity} {service} has been cancelled. {reason}',
    ),
    'order_failed': (
        'Order Failed',
        'Your order for {quantity} {service} could not be delivered. Please contact support.',
    ),
    'order_partial': (
        'Order Partially Delivered',
        'Your order for {quantity} {service} is partially delivered ({progress}% so far).',
    ),
}


class _Defaults(dict):
    def __missing__(self, key):
        return ''


def render(kind, context):
    title, body = TEMPLATES[kind]
    return title, body.format_map(_Defaults(context)).strip()


def order_context(order, **extra):
    context = {
        'order_id': str(order.id),
        'service': order.service.name,
        'quantity': str(order.quantity),
        'price': str(order.price),
    }
    context.update({key: str(value) for key, value in extra.items()})
    return context


def _enqueue(user_id, kind, context):
    from notifications.tasks import send_notification

    try:
        send_notification.delay(user_id, kind, context)
    except Exception as e:
        logger.error(f"Failed to queue {kind} notification for user {user_id}: {str(e)}")


def notify(user_id, kind, context):
    """
    Queue a notification for delivery once the current transaction commits.

    Never raises: a notification problem must not undo the status change
    that triggered it.
    """
    if user_id is None:
        logger.debug(f"Skipping {kind} notification without a user (order {context.get('order_id')})")
        return

    user_id = str(user_id)
    transaction.on_commit(lambda: _enqueue(user_id, kind, context))
