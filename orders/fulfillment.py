"""Hand paid orders to the upstream SMM provider."""

import logging
from django.conf import settings
from django.db import transaction

from services.models import Service
from services.provider import SMMProviderClient
from .exceptions import DispatchError, IllegalTransition
from .models import Order
from .state_machine import start_processing
from .utils import LockNotAcquired, cache_lock, get_dispatch_lock_key

logger = logging.getLogger(__name__)


def _check_dispatchable(order_id, provider_service_id, quantity):
    """
    Validate an order and its target service under row locks.

    Returns:
        tuple: (order, service, quantity)
    """
    with transaction.atomic():
        try:
            order = Order.objects.select_for_update().select_related('service__provider').get(id=order_id)
        except Order.DoesNotExist:
            raise DispatchError(f"Order {order_id} not found")

        if order.status != Order.Status.PENDING:
            raise IllegalTransition(
                f"Order {order.id} is {order.status}, only pending orders can be dispatched",
                current=order.status,
                target=Order.Status.PROCESSING,
            )
        if not order.can_start_processing():
            raise IllegalTransition(
                f"Order {order.id} cannot be dispatched before its payment is completed",
                current=order.status,
                target=Order.Status.PROCESSING,
            )

        provider = order.service.provider
        service = Service.objects.filter(
            provider=provider,
            provider_service_id=str(provider_service_id),
        ).select_related('provider').first()
        if service is None:
            raise DispatchError(f"Service {provider_service_id} not found on provider {provider.slug}")
        if not service.active:
            raise DispatchError(f"Service {provider_service_id} on provider {provider.slug} is inactive")

        quantity = order.quantity if quantity is None else int(quantity)
        if not service.accepts_quantity(quantity):
            raise DispatchError(
                f"Quantity {quantity} outside service limits [{service.min_order}, {service.max_order}]"
            )

    return order, service, quantity


def dispatch_order(order_id, provider_service_id, quantity=None, client=None):
    """
    Submit a paid order upstream and move it to processing.

    Args:
        order_id: UUID of the Order
        provider_service_id: service id on the provider panel
        quantity: units to order upstream (defaults to the ordered quantity)
        client: optional SMMProviderClient

    Returns:
        str: the provider's order id

    Raises:
        IllegalTransition: the order is not pending or not paid
        DispatchError: bad service/quantity, or a dispatch already in flight
        ProviderError: the provider call failed; nothing is written
    """
    lock_timeout = int(settings.SMM_PROVIDER_TIMEOUT) * 2

    try:
        with cache_lock(get_dispatch_lock_key(order_id), timeout=lock_timeout):
            order, service, quantity = _check_dispatchable(order_id, provider_service_id, quantity)

            client = client or SMMProviderClient.for_provider(service.provider)
            logger.info(
                f"Dispatching order {order.id} to provider {service.provider.slug} "
                f"(service={service.provider_service_id}, quantity={quantity})"
            )
            result = client.add_order(service.provider_service_id, order.link, quantity)
            external_order_id = result['external_order_id']

            try:
                start_processing(
                    order,
                    external_order_id,
                    provider_service=service,
                    quantity=quantity,
                    charge=result.get('charge'),
                    start_count=result.get('start_count'),
                )
            except IllegalTransition:
                logger.error(
                    f"Provider accepted order {order.id} as {external_order_id} "
                    f"but the order can no longer start processing"
                )
                raise
    except LockNotAcquired:
        raise DispatchError(f"Order {order_id} is already being dispatched")

    return external_order_id
