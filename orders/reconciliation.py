"""
Keep processing orders in line with what the upstream provider reports.

The poller asks the provider for the status of every PROCESSING order in
batches, stores progress (remains, start count, raw provider status) and
moves orders to a terminal status through the state machine.
"""

import logging
import time
from collections import defaultdict
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from notifications.services import notify, order_context
from services.provider import SMMProviderClient
from .exceptions import IllegalTransition
from .models import Order
from .state_machine import apply_provider_status

logger = logging.getLogger(__name__)

KEEP_PROCESSING = 'keep_processing'
PARTIAL = 'partial'
UNKNOWN = 'unknown'

PROVIDER_STATUS_MAP = {
    'completed': Order.Status.COMPLETED,
    'processing': KEEP_PROCESSING,
    'in progress': KEEP_PROCESSING,
    'pending': KEEP_PROCESSING,
    'partial': PARTIAL,
    'cancelled': Order.Status.CANCELLED,
    'canceled': Order.Status.CANCELLED,
    'failed': Order.Status.FAILED,
}


@dataclass(frozen=True)
class ReconciliationConfig:
    batch_size: int = 100
    batch_delay: float = 1.0

    @classmethod
    def from_settings(cls):
        return cls(
            batch_size=int(settings.RECONCILIATION_BATCH_SIZE),
            batch_delay=float(settings.RECONCILIATION_BATCH_DELAY_SECONDS),
        )


def map_provider_status(provider_status):
    """
    Map a provider status string to an order target.

    Returns a terminal Order.Status, KEEP_PROCESSING, PARTIAL or UNKNOWN.
    """
    key = (provider_status or '').strip().lower()
    return PROVIDER_STATUS_MAP.get(key, UNKNOWN)


def compute_progress(quantity, remains):
    """
    Returns:
        tuple: (delivered units, percent delivered capped at 100)
    """
    if not quantity:
        return 0, 0
    remains = quantity if remains is None else remains
    delivered = min(max(quantity - remains, 0), quantity)
    return delivered, min(round(delivered / quantity * 100), 100)


def estimate_remaining(elapsed_seconds, pct):
    """Seconds left assuming delivery continues at the observed pace; None before any progress."""
    if not pct or pct <= 0:
        return None
    return max(round(elapsed_seconds / pct * 100 - elapsed_seconds), 0)


def reconcile_order(order, status):
    """
    Apply one provider status report to an order.

    Args:
        order: Order (re-read under lock)
        status: ProviderOrderStatus for the order's provider order id

    Returns:
        bool: True if anything about the order changed
    """
    target = map_provider_status(status.status)

    with transaction.atomic():
        order = Order.objects.select_for_update().select_related('service').get(pk=order.pk)

        if order.is_terminal:
            logger.debug(f"Order {order.id} already {order.status}, ignoring provider status {status.status!r}")
            return False

        previous = (order.provider_status, order.remains, order.start_count)
        became_partial = target == PARTIAL and order.provider_status.strip().lower() != PARTIAL

        order.provider_status = status.status
        if status.remains is not None:
            order.remains = status.remains
        if status.start_count is not None:
            order.start_count = status.start_count
        order.last_synced_at = timezone.now()
        order.save(update_fields=['provider_status', 'remains', 'start_count', 'last_synced_at', 'updated_at'])

        changed = previous != (order.provider_status, order.remains, order.start_count)

        if target in (Order.Status.COMPLETED, Order.Status.CANCELLED, Order.Status.FAILED):
            _, moved = apply_provider_status(order, target)
            changed = changed or moved
        elif became_partial:
            _, pct = compute_progress(order.provider_quantity or order.quantity, order.remains)
            notify(order.customer_id, 'order_partial', order_context(order, progress=pct))
        elif target == UNKNOWN:
            logger.warning(f"Order {order.id} has unrecognised provider status {status.status!r}")

    if changed:
        logger.info(
            f"Order {order.id} reconciled: provider_status={status.status!r} "
            f"remains={status.remains} target={target}"
        )
    return changed


def _client_for(provider, client):
    return client or SMMProviderClient.for_provider(provider)


def _chunks(items, size):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def poll_processing_orders(client=None, config=None):
    """
    Run one reconciliation cycle over every dispatched, processing order.

    Args:
        client: optional SMMProviderClient used for every provider
        config: optional ReconciliationConfig

    Returns:
        dict: checked, updated, failed and skipped counts
    """
    config = config or ReconciliationConfig.from_settings()
    counts = {'checked': 0, 'updated': 0, 'failed': 0, 'skipped': 0}

    orders = (
        Order.objects.filter(status=Order.Status.PROCESSING, provider_order_id__isnull=False)
        .exclude(provider_order_id='')
        .select_related('service__provider', 'provider_service__provider')
        .order_by('dispatched_at', 'created_at')
    )

    by_provider = defaultdict(list)
    providers = {}
    for order in orders:
        provider = (order.provider_service or order.service).provider
        providers[provider.pk] = provider
        by_provider[provider.pk].append(order)

    first_chunk = True
    for provider_pk, provider_orders in by_provider.items():
        provider = providers[provider_pk]
        provider_client = _client_for(provider, client)

        for chunk in _chunks(provider_orders, max(config.batch_size, 1)):
            if not first_chunk and config.batch_delay > 0:
                time.sleep(config.batch_delay)
            first_chunk = False

            counts['checked'] += len(chunk)
            try:
                statuses = provider_client.multi_status([o.provider_order_id for o in chunk])
            except Exception as e:
                logger.error(f"Status lookup failed for {len(chunk)} orders on provider {provider.slug}: {str(e)}")
                counts['failed'] += len(chunk)
                continue

            for order in chunk:
                status = statuses.get(order.provider_order_id)
                if status is None or not status.ok:
                    error = status.error if status is not None else 'missing from response'
                    logger.warning(f"No status for order {order.id} (provider order {order.provider_order_id}): {error}")
                    counts['failed'] += 1
                    continue

                try:
                    changed = reconcile_order(order, status)
                except Exception as e:
                    logger.error(f"Failed to reconcile order {order.id}: {str(e)}")
                    counts['failed'] += 1
                    continue

                counts['updated' if changed else 'skipped'] += 1

    logger.info(
        f"Reconciliation cycle finished: {counts['checked']} checked, {counts['updated']} updated, "
        f"{counts['failed']} failed, {counts['skipped']} skipped"
    )
    return counts


def sync_order_status(order_id, client=None):
    """
    Reconcile a single order on demand.

    Raises:
        Order.DoesNotExist: unknown order
        IllegalTransition: the order has not been dispatched or is already final
        ProviderError: the provider call failed; nothing is written
    """
    order = Order.objects.select_related('service__provider', 'provider_service__provider').get(id=order_id)

    if order.status != Order.Status.PROCESSING or not order.provider_order_id:
        raise IllegalTransition(
            f"Order {order.id} is {order.status} and has no provider order to sync",
            current=order.status,
        )

    provider = (order.provider_service or order.service).provider
    status = _client_for(provider, client).order_status(order.provider_order_id)
    reconcile_order(order, status)

    order.refresh_from_db()
    return order
