from decimal import Decimal

import pytest

from payments.models import Payment, Transaction, WebhookLog
from payments.utils import GatewayError

from .helpers import budpay_payload

pytestmark = pytest.mark.django_db


class TestWebhookEndpoint:
    def test_matched_webhook(self, api_client, make_order, mock_notify):
        order = make_order(amount='2500', virtual_account_number='1234567890')

        response = api_client.post(
            '/api/payments/webhook/budpay/',
            budpay_payload(amount='2500', craccount='1234567890'),
            format='json',
            HTTP_USER_AGENT='BudPay-Hook',
        )

        assert response.status_code == 200
        assert response.data['success'] is True
        assert Payment.objects.get(id=order.payment.id).status == Payment.Status.COMPLETED
        log = WebhookLog.objects.get()
        assert log.user_agent == 'BudPay-Hook'
        assert log.ip_address == '127.0.0.1'

    def test_unmatched_webhook_still_returns_200(self, api_client):
        response = api_client.post('/api/payments/webhook/budpay/', budpay_payload(), format='json')

        assert response.status_code == 200
        assert response.data['success'] is False
        assert 'error' in response.data

    def test_invalid_json_returns_200(self, api_client):
        response = api_client.post(
            '/api/payments/webhook/budpay/', data='{not json', content_type='application/json'
        )

        assert response.status_code == 200
        assert response.data['success'] is False
        assert WebhookLog.objects.get().payload == {'raw': '{not json'}

    def test_unsupported_content_type_is_logged(self, api_client):
        response = api_client.post(
            '/api/payments/webhook/budpay/', data='{"notifyType": "successful"}', content_type='text/plain'
        )

        assert response.status_code == 200
        log = WebhookLog.objects.get()
        assert log.payload['notifyType'] == 'successful'
        assert log.processed is True

    def test_authorization_header_not_stored(self, api_client):
        api_client.post(
            '/api/payments/webhook/budpay/', budpay_payload(), format='json', HTTP_AUTHORIZATION='Bearer secret'
        )

        headers = {k.lower() for k in WebhookLog.objects.get().headers}
        assert 'authorization' not in headers


class TestInitiatePayment:
    def test_budpay_virtual_account(self, customer_client, make_order, mocker):
        order = make_order(amount='1950')
        create = mocker.patch('payments.views.create_virtual_account', return_value={
            'account_number': '9900112233', 'account_name': 'Boost/Order', 'bank_name': 'Wema Bank', 'bank_code': '035',
        })

        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(order.id), 'provider': 'budpay'}, format='json'
        )

        assert response.status_code == 200
        assert response.data['data']['account_number'] == '9900112233'
        payment = Payment.objects.get(id=order.payment.id)
        assert payment.virtual_account_number == '9900112233'
        assert payment.bank_name == 'Wema Bank'
        create.assert_called_once()

    def test_budpay_account_is_reused(self, customer_client, make_order, mocker):
        order = make_order(virtual_account_number='9900112233')
        create = mocker.patch('payments.views.create_virtual_account')

        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(order.id), 'provider': 'budpay'}, format='json'
        )

        assert response.data['data']['account_number'] == '9900112233'
        create.assert_not_called()

    def test_gateway_failure(self, customer_client, make_order, mocker):
        order = make_order()
        mocker.patch('payments.views.create_virtual_account', side_effect=GatewayError('down'))

        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(order.id), 'provider': 'budpay'}, format='json'
        )

        assert response.status_code == 502
        assert Payment.objects.get(id=order.payment.id).virtual_account_number == ''

    def test_crypto_instructions(self, customer_client, make_order, settings):
        settings.CRYPTO_WALLET_ADDRESS = 'TWalletAddress'
        order = make_order(amount='3000')

        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(order.id), 'provider': 'crypto'}, format='json'
        )

        data = response.data['data']
        assert data['wallet_address'] == 'TWalletAddress'
        assert data['network'] == 'TRC20'
        assert Decimal(data['amount']) == Decimal('2')
        payment = Payment.objects.get(id=order.payment.id)
        assert payment.method == Payment.Method.CRYPTO
        assert payment.crypto_amount == Decimal('2')

    def test_completed_payment_rejected(self, customer_client, paid_order):
        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(paid_order.id), 'provider': 'budpay'}, format='json'
        )
        assert response.status_code == 409

    def test_other_customers_order(self, customer_client, make_order, other_customer):
        order = make_order(owner=other_customer)

        response = customer_client.post(
            '/api/payments/initiate/', {'order_id': str(order.id), 'provider': 'crypto'}, format='json'
        )

        assert response.status_code == 403


class TestVerifyPayment:
    def verification(self, status='success', amount='2500', reference='BUD_VERIFY_1'):
        return {
            'status': status,
            'reference': reference,
            'amount': Decimal(amount),
            'currency': 'NGN',
            'paid_at': None,
            'customer_email': None,
            'raw': {'reference': reference, 'amount': amount, 'currency': 'NGN', 'status': status},
        }

    def test_success_settles_payment(self, customer_client, make_order, mocker, mock_notify):
        order = make_order(amount='2500')
        mocker.patch('payments.views.verify_payment', return_value=self.verification())

        response = customer_client.post(
            '/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json'
        )

        assert response.status_code == 200
        assert response.data['data']['status'] == 'success'
        payment = Payment.objects.get(id=order.payment.id)
        assert payment.status == Payment.Status.COMPLETED
        txn = Transaction.objects.get(payment=payment)
        assert txn.webhook_received is False
        assert txn.external_reference == 'BUD_VERIFY_1'

    def test_existing_transaction_returned_without_gateway_call(self, customer_client, make_order, mocker):
        order = make_order(payment_status=Payment.Status.COMPLETED)
        Transaction.objects.create(
            payment=order.payment, external_reference='DONE', amount=order.payment.amount,
            status=Transaction.Status.COMPLETED,
        )
        verify = mocker.patch('payments.views.verify_payment')

        response = customer_client.post('/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json')

        assert response.data['data']['status'] == 'success'
        assert response.data['data']['transaction']['external_reference'] == 'DONE'
        verify.assert_not_called()

    def test_pending_gateway_status_writes_nothing(self, customer_client, make_order, mocker):
        order = make_order(amount='2500')
        mocker.patch('payments.views.verify_payment', return_value=self.verification(status='pending'))

        response = customer_client.post('/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json')

        assert response.data['data']['status'] == 'pending'
        assert Payment.objects.get(id=order.payment.id).status == Payment.Status.PENDING
        assert not Transaction.objects.exists()

    def test_amount_mismatch_writes_nothing(self, customer_client, make_order, mocker):
        order = make_order(amount='2500')
        mocker.patch('payments.views.verify_payment', return_value=self.verification(amount='100'))

        response = customer_client.post('/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json')

        assert response.data['data']['status'] == 'pending'
        assert not Transaction.objects.exists()

    def test_crypto_is_not_auto_completed(self, customer_client, make_order, mocker):
        order = make_order(method=Payment.Method.CRYPTO)
        verify = mocker.patch('payments.views.verify_payment')

        response = customer_client.post('/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json')

        assert response.data['data']['status'] == 'pending'
        assert Payment.objects.get(id=order.payment.id).status == Payment.Status.PENDING
        verify.assert_not_called()

    def test_gateway_error(self, customer_client, make_order, mocker):
        order = make_order()
        mocker.patch('payments.views.verify_payment', side_effect=GatewayError('timeout'))

        response = customer_client.post('/api/payments/verify/', {'reference': order.payment.gateway_ref}, format='json')

        assert response.status_code == 502

    def test_other_payments_transaction_is_not_returned(self, customer_client, make_order, other_customer, mocker):
        foreign = make_order(owner=other_customer, payment_status=Payment.Status.COMPLETED)
        Transaction.objects.create(
            payment=foreign.payment, external_reference='THEIRS', amount=foreign.payment.amount,
            status=Transaction.Status.COMPLETED,
        )
        order = make_order(amount='2500')
        verify = mocker.patch('payments.views.verify_payment')

        response = customer_client.post(
            '/api/payments/verify/',
            {'reference': order.payment.gateway_ref, 'transaction_reference': 'THEIRS'},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['data']['status'] == 'pending'
        assert response.data['data']['transaction'] is None
        verify.assert_not_called()

    def test_amount_only_match_on_supplied_reference_is_queued(self, customer_client, make_order, mocker, mock_notify):
        order = make_order(amount='2500')
        mocker.patch('payments.views.verify_payment', return_value=self.verification(reference='SOMEONE_ELSES'))

        for _ in range(2):
            response = customer_client.post(
                '/api/payments/verify/',
                {'reference': order.payment.gateway_ref, 'transaction_reference': 'SOMEONE_ELSES'},
                format='json',
            )
            assert response.data['data']['status'] == 'pending'

        assert Payment.objects.get(id=order.payment.id).status == Payment.Status.PENDING
        assert not Transaction.objects.exists()
        log = WebhookLog.objects.get()
        assert log.needs_review is True
        assert log.payment_id == order.payment.id
        assert log.match_tier == 'exact_amount'
        mock_notify.assert_not_called()


class TestPaymentStatus:
    def test_status(self, customer_client, make_order):
        order = make_order(amount='2500')

        response = customer_client.get(f'/api/payments/status/{order.id}/')

        assert response.status_code == 200
        assert response.data['data']['status'] == Payment.Status.PENDING
        assert response.data['data']['transaction'] is None


class TestResolveWebhookLogEndpoint:
    def test_admin_resolves_review_item(self, admin_client, api_client, make_order, mock_notify):
        first = make_order(amount='2500')
        make_order(amount='2500')
        api_client.post('/api/payments/webhook/budpay/', budpay_payload(amount='2500'), format='json')
        log = WebhookLog.objects.get()

        review = admin_client.get('/api/payments/webhook-logs/review/')
        assert [item['id'] for item in review.data['data']] == [str(log.id)]

        response = admin_client.post(
            f'/api/payments/webhook-logs/{log.id}/resolve/', {'payment_id': str(first.payment.id)}, format='json'
        )

        assert response.status_code == 200
        assert Payment.objects.get(id=first.payment.id).status == Payment.Status.COMPLETED
        assert admin_client.get('/api/payments/webhook-logs/review/').data['data'] == []

    def test_customer_cannot_resolve(self, customer_client, make_order):
        order = make_order()
        log = WebhookLog.objects.create(provider='budpay', payload=budpay_payload(), needs_review=True)

        response = customer_client.post(
            f'/api/payments/webhook-logs/{log.id}/resolve/', {'payment_id': str(order.payment.id)}, format='json'
        )

        assert response.status_code == 403
