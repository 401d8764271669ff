from decimal import Decimal

import pytest
from django.core.cache import cache

from orders.exceptions import DispatchError, IllegalTransition
from orders.fulfillment import dispatch_order
from orders.models import Order
from orders.utils import get_dispatch_lock_key
from payments.models import Payment
from services.models import Provider, Service
from services.provider import ProviderError

pytestmark = pytest.mark.django_db


@pytest.fixture
def provider_client(mocker):
    provider_client = mocker.MagicMock()
    provider_client.add_order.return_value = {'external_order_id': '777', 'charge': Decimal('1.30'), 'start_count': 12}
    return provider_client


class TestDispatchOrder:
    def test_dispatches_paid_order(self, paid_order, service, provider_client, mock_notify):
        provider_order_id = dispatch_order(paid_order.id, '101', client=provider_client)

        assert provider_order_id == '777'
        provider_client.add_order.assert_called_once_with('101', paid_order.link, paid_order.quantity)
        order = Order.objects.get(id=paid_order.id)
        assert order.status == Order.Status.PROCESSING
        assert order.provider_order_id == '777'
        assert order.provider_service_id == service.id
        assert order.provider_charge == Decimal('1.30')
        assert order.start_count == 12

    def test_explicit_quantity(self, paid_order, provider_client, mock_notify):
        dispatch_order(paid_order.id, '101', quantity=500, client=provider_client)

        provider_client.add_order.assert_called_once_with('101', paid_order.link, 500)
        assert Order.objects.get(id=paid_order.id).provider_quantity == 500

    def test_rejects_unpaid_order_without_writes(self, make_order, provider_client, mock_notify):
        order = make_order()

        with pytest.raises(IllegalTransition):
            dispatch_order(order.id, '101', client=provider_client)

        provider_client.add_order.assert_not_called()
        order.refresh_from_db()
        assert order.status == Order.Status.PENDING
        assert order.provider_order_id is None
        assert Payment.objects.get(order=order).status == Payment.Status.PENDING

    def test_rejects_processing_order(self, processing_order, provider_client):
        with pytest.raises(IllegalTransition):
            dispatch_order(processing_order.id, '101', client=provider_client)
        provider_client.add_order.assert_not_called()

    def test_unknown_service(self, paid_order, provider_client):
        with pytest.raises(DispatchError, match='not found'):
            dispatch_order(paid_order.id, '999', client=provider_client)

    def test_service_of_another_provider(self, paid_order, platform, provider_client):
        other = Provider.objects.create(name='Other', slug='other', api_url='https://other.example.com/api/v2')
        Service.objects.create(
            provider=other, platform=platform, provider_service_id='202', name='Instagram Likes',
            provider_rate=Decimal('1'), boost_rate=Decimal('1.3'), min_order=10, max_order=1000,
        )

        with pytest.raises(DispatchError):
            dispatch_order(paid_order.id, '202', client=provider_client)

    def test_inactive_service(self, paid_order, service, provider_client):
        service.active = False
        service.save()

        with pytest.raises(DispatchError, match='inactive'):
            dispatch_order(paid_order.id, '101', client=provider_client)

    def test_quantity_out_of_range(self, paid_order, provider_client):
        with pytest.raises(DispatchError, match='limits'):
            dispatch_order(paid_order.id, '101', quantity=50, client=provider_client)

    def test_provider_error_leaves_order_pending(self, paid_order, provider_client, mock_notify):
        provider_client.add_order.side_effect = ProviderError('Not enough funds on balance')

        with pytest.raises(ProviderError):
            dispatch_order(paid_order.id, '101', client=provider_client)

        order = Order.objects.get(id=paid_order.id)
        assert order.status == Order.Status.PENDING
        assert order.provider_order_id is None
        mock_notify.assert_not_called()
        assert cache.get(get_dispatch_lock_key(paid_order.id)) is None

    def test_concurrent_dispatch_is_rejected(self, paid_order, provider_client):
        cache.add(get_dispatch_lock_key(paid_order.id), 'other-admin', 30)

        with pytest.raises(DispatchError, match='already being dispatched'):
            dispatch_order(paid_order.id, '101', client=provider_client)

        provider_client.add_order.assert_not_called()
