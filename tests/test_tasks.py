from datetime import timedelta

import pytest
from django.utils import timezone

from orders.models import Order
from orders.tasks import cleanup_unpaid_orders
from payments.models import Payment, Transaction

pytestmark = pytest.mark.django_db


def age(order, days):
    Order.objects.filter(id=order.id).update(created_at=timezone.now() - timedelta(days=days))


class TestCleanupUnpaidOrders:
    def test_deletes_stale_unpaid_orders(self, make_order):
        stale = make_order()
        age(stale, 10)
        recent = make_order()

        assert cleanup_unpaid_orders(days=7) == 1

        assert not Order.objects.filter(id=stale.id).exists()
        assert not Payment.objects.filter(order_id=stale.id).exists()
        assert Order.objects.filter(id=recent.id).exists()

    def test_keeps_paid_and_dispatched_orders(self, make_order, paid_order, processing_order):
        age(paid_order, 30)
        age(processing_order, 30)
        failed = make_order(payment_status=Payment.Status.FAILED)
        age(failed, 30)

        assert cleanup_unpaid_orders(days=7) == 1
        assert set(Order.objects.values_list('id', flat=True)) == {paid_order.id, processing_order.id}

    def test_keeps_orders_with_gateway_transactions(self, make_order):
        failed = make_order(payment_status=Payment.Status.FAILED)
        Transaction.objects.create(
            payment=failed.payment, external_reference='DECLINED_1', amount=failed.payment.amount,
            status=Transaction.Status.FAILED,
        )
        age(failed, 30)
        abandoned = make_order()
        age(abandoned, 30)

        assert cleanup_unpaid_orders(days=7) == 1

        assert Order.objects.filter(id=failed.id).exists()
        assert Transaction.objects.filter(external_reference='DECLINED_1').exists()
        assert not Order.objects.filter(id=abandoned.id).exists()

    def test_default_retention_from_settings(self, make_order, settings):
        settings.UNPAID_ORDER_RETENTION_DAYS = 3
        order = make_order()
        age(order, 4)

        assert cleanup_unpaid_orders() == 1
