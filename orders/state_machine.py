"""
Authoritative status transitions for payments and their orders.

Every status write goes through here. Each transition re-reads the rows
under ``select_for_update`` inside ``transaction.atomic()``, checks its
guard against the locked state and writes the new status together with
any dependent rows. A failed guard raises ``IllegalTransition``.
Notifications are queued on commit, so a rolled-back transition never
notifies and a failed notification never rolls back a transition.
"""

import logging
from django.db import transaction
from django.utils import timezone

from notifications.services import notify, order_context
from payments.models import Payment, Transaction
from .exceptions import IllegalTransition
from .models import Order

logger = logging.getLogger(__name__)

PROVIDER_OUTCOME_NOTIFICATIONS = {
    Order.Status.COMPLETED: 'order_completed',
    Order.Status.CANCELLED: 'order_cancelled',
    Order.Status.FAILED: 'order_failed',
}


def _locked_payment(payment):
    return Payment.objects.select_for_update().select_related('order', 'order__service').get(pk=payment.pk)


def _locked_order(order):
    return Order.objects.select_for_update().select_related('service').get(pk=order.pk)


@transaction.atomic
def complete_payment(payment, settled_by=None):
    """
    PENDING -> COMPLETED.

    Args:
        payment: Payment instance (re-read under lock)
        settled_by: the COMPLETED Transaction that settles it, if already created

    The order is left PENDING; dispatch stays an explicit admin action.
    """
    payment = _locked_payment(payment)

    if not payment.can_be_settled():
        raise IllegalTransition(
            f"Payment {payment.id} cannot be completed from status {payment.status}",
            current=payment.status,
            target=Payment.Status.COMPLETED,
        )

    others = Transaction.objects.filter(payment=payment, status=Transaction.Status.COMPLETED)
    if settled_by is not None:
        others = others.exclude(pk=settled_by.pk)
    if others.exists():
        raise IllegalTransition(
            f"Payment {payment.id} already has a completed transaction",
            current=payment.status,
            target=Payment.Status.COMPLETED,
        )

    payment.status = Payment.Status.COMPLETED
    payment.save(update_fields=['status', 'updated_at'])
    logger.info(f"Payment {payment.id} completed for order {payment.order_id}")

    order = payment.order
    notify(order.customer_id, 'payment_received', order_context(order))
    return payment


@transaction.atomic
def fail_payment(payment):
    """PENDING -> FAILED. The order is untouched."""
    payment = _locked_payment(payment)

    if not payment.can_be_settled():
        raise IllegalTransition(
            f"Payment {payment.id} cannot be failed from status {payment.status}",
            current=payment.status,
            target=Payment.Status.FAILED,
        )

    payment.status = Payment.Status.FAILED
    payment.save(update_fields=['status', 'updated_at'])
    logger.info(f"Payment {payment.id} failed for order {payment.order_id}")
    return payment


@transaction.atomic
def start_processing(order, provider_order_id, *, provider_service=None, quantity=None, charge=None, start_count=None):
    """
    PENDING -> PROCESSING once the provider accepted the order.

    Guard: the order's payment is COMPLETED.
    """
    order = _locked_order(order)
    payment = Payment.objects.select_for_update().filter(order=order).first()

    if order.status != Order.Status.PENDING or payment is None or payment.status != Payment.Status.COMPLETED:
        raise IllegalTransition(
            f"Order {order.id} cannot start processing "
            f"(order={order.status}, payment={payment.status if payment else 'missing'})",
            current=order.status,
            target=Order.Status.PROCESSING,
        )

    order.status = Order.Status.PROCESSING
    order.provider_order_id = str(provider_order_id)
    order.provider_service = provider_service
    order.provider_quantity = quantity or order.quantity
    order.provider_charge = charge
    order.start_count = start_count
    order.remains = order.provider_quantity
    order.dispatched_at = timezone.now()
    order.save(update_fields=[
        'status', 'provider_order_id', 'provider_service', 'provider_quantity', 'provider_charge',
        'start_count', 'remains', 'dispatched_at', 'updated_at',
    ])
    logger.info(f"Order {order.id} processing upstream as provider order {provider_order_id}")

    notify(order.customer_id, 'order_processing', order_context(order))
    return order


@transaction.atomic
def cancel_order(order, reason=''):
    """PENDING/PROCESSING -> CANCELLED with the reason recorded."""
    order = _locked_order(order)

    if not order.can_be_cancelled():
        raise IllegalTransition(
            f"Order {order.id} cannot be cancelled from status {order.status}",
            current=order.status,
            target=Order.Status.CANCELLED,
        )

    order.status = Order.Status.CANCELLED
    order.cancel_reason = reason or ''
    order.save(update_fields=['status', 'cancel_reason', 'updated_at'])
    logger.info(f"Order {order.id} cancelled: {reason or 'no reason given'}")

    notify(order.customer_id, 'order_cancelled', order_context(order, reason=reason or ''))
    return order


@transaction.atomic
def apply_provider_status(order, target):
    """
    PROCESSING -> COMPLETED/CANCELLED/FAILED as reported by the provider.

    Returns:
        tuple: (order, changed). Re-applying the current status is a no-op.
    """
    if target not in PROVIDER_OUTCOME_NOTIFICATIONS:
        raise ValueError(f"{target!r} is not a terminal provider outcome")

    order = _locked_order(order)

    if order.status == target:
        return order, False

    if not order.can_apply_provider_status():
        raise IllegalTransition(
            f"Order {order.id} cannot move from {order.status} to {target}",
            current=order.status,
            target=target,
        )

    order.status = target
    update_fields = ['status', 'updated_at']
    if target == Order.Status.COMPLETED:
        order.remains = 0
        update_fields.append('remains')
    order.save(update_fields=update_fields)
    logger.info(f"Order {order.id} moved to {target} from provider status")

    notify(order.customer_id, PROVIDER_OUTCOME_NOTIFICATIONS[target], order_context(order))
    return order, True
