"""Background tasks using Celery."""

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.db.models import Q
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def reconcile_processing_orders():
    """
    Scheduled reconciliation cycle.

    Overlapping runs are skipped; errors are logged so the beat schedule
    keeps firing.
    """
    from orders.reconciliation import poll_processing_orders
    from orders.utils import LockNotAcquired, cache_lock, get_poll_lock_key

    try:
        with cache_lock(get_poll_lock_key(), timeout=int(settings.RECONCILIATION_INTERVAL_SECONDS)):
            return poll_processing_orders()
    except LockNotAcquired:
        logger.info("Previous reconciliation cycle still running, skipping")
        return None
    except Exception as e:
        logger.exception(f"Reconciliation cycle failed: {str(e)}")
        return None


@shared_task
def cleanup_unpaid_orders(days=None):
    """
    Delete pending orders whose payment never completed.

    Orders with any recorded gateway transaction are kept as audit history.

    Args:
        days: age threshold (defaults to UNPAID_ORDER_RETENTION_DAYS)

    Returns:
        int: number of orders deleted
    """
    from orders.models import Order

    days = settings.UNPAID_ORDER_RETENTION_DAYS if days is None else days
    cutoff = timezone.now() - timedelta(days=int(days))

    stale = Order.objects.filter(
        status=Order.Status.PENDING,
        created_at__lt=cutoff,
    ).filter(
        Q(payment__isnull=True) | ~Q(payment__status='completed')
    ).filter(
        payment__transactions__isnull=True
    )

    order_ids = list(stale.values_list('id', flat=True))
    if not order_ids:
        return 0

    Order.objects.filter(id__in=order_ids).delete()
    logger.info(f"Deleted {len(order_ids)} unpaid orders older than {days} days")
    return len(order_ids)
