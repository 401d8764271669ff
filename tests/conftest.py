from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from orders.models import Order
from payments.models import Payment
from services.models import Platform, Provider, Service
from users.models import User


@pytest.fixture(autouse=True)
def _test_settings(settings):
    settings.CACHES = {'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache'}}
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.RECONCILIATION_BATCH_DELAY_SECONDS = 0
    settings.BUDPAY_KNOWN_FEE = '50'
    settings.PAYMENT_AMOUNT_TOLERANCE = '1'
    settings.PAYMENT_MATCH_TIE_POLICY = 'review'
    settings.PAYMENT_MATCH_AUTO_APPLY_AMOUNT_ONLY = True
    settings.SMM_MARKUP_PERCENTAGE = '30'
    settings.USDT_EXCHANGE_RATE = '1500'


@pytest.fixture(autouse=True)
def _clear_cache():
    from django.core.cache import cache

    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def customer():
    return User.objects.create_user(email='customer@example.com', password='pass1234', username='customer')


@pytest.fixture
def other_customer():
    return User.objects.create_user(email='other@example.com', password='pass1234', username='other')


@pytest.fixture
def admin_user():
    return User.objects.create_user(
        email='admin@example.com', password='pass1234', username='admin', role=User.Role.ADMIN, is_staff=True
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def customer_client(api_client, customer):
    api_client.force_authenticate(user=customer)
    return api_client


@pytest.fixture
def admin_client(admin_user):
    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def platform():
    return Platform.objects.create(name='Instagram', slug='instagram')


@pytest.fixture
def provider():
    return Provider.objects.create(name='SMM Stone', slug='smmstone', api_url='https://panel.example.com/api/v2', api_key='key')


@pytest.fixture
def service(provider, platform):
    return Service.objects.create(
        provider=provider,
        platform=platform,
        provider_service_id='101',
        name='Instagram Followers [Real]',
        type='Default',
        category='Instagram Followers',
        provider_rate=Decimal('1.0000'),
        boost_rate=Decimal('1.3000'),
        min_order=100,
        max_order=10000,
    )


@pytest.fixture
def make_order(customer, platform, service):
    """Create an order with its payment; amounts are in NGN."""
    counter = {'n': 0}

    def _make(amount='2500.00', status=Order.Status.PENDING, payment_status=Payment.Status.PENDING,
              method=Payment.Method.NGN, quantity=1000, virtual_account_number='', gateway_ref=None, owner=customer):
        counter['n'] += 1
        order = Order.objects.create(
            customer=owner,
            platform=platform,
            service=service,
            quantity=quantity,
            link='https://instagram.com/someone',
            price=Decimal(amount),
            status=status,
        )
        Payment.objects.create(
            order=order,
            amount=Decimal(amount),
            method=method,
            status=payment_status,
            gateway_ref=gateway_ref or f"boost_{order.id}_{1700000000000 + counter['n']}",
            virtual_account_number=virtual_account_number,
        )
        return Order.objects.select_related('payment', 'service').get(id=order.id)

    return _make


@pytest.fixture
def paid_order(make_order):
    return make_order(payment_status=Payment.Status.COMPLETED)


@pytest.fixture
def processing_order(make_order, service):
    order = make_order(payment_status=Payment.Status.COMPLETED, status=Order.Status.PROCESSING)
    order.provider_order_id = '555'
    order.provider_service = service
    order.provider_quantity = order.quantity
    order.remains = order.quantity
    order.save()
    return order


@pytest.fixture
def mock_notify(mocker):
    """Capture notifications at every call site."""
    mock = mocker.MagicMock()
    mocker.patch('orders.state_machine.notify', mock)
    mocker.patch('orders.reconciliation.notify', mock)
    return mock
