import pytest

from payments.ledger import mark_outcome, process_webhook, record
from payments.matcher import MANUAL, resolve_webhook_log
from payments.models import Payment, Transaction, WebhookLog
from orders.exceptions import IllegalTransition

from .helpers import budpay_payload

pytestmark = pytest.mark.django_db

META = {'headers': {'Content-Type': 'application/json'}, 'ip_address': '10.0.0.1', 'user_agent': 'BudPay'}


class TestRecord:
    def test_record_stores_raw_payload(self):
        payload = budpay_payload()

        log = record(payload, provider='budpay', **META)

        assert log.provider == 'budpay'
        assert log.event == 'successful'
        assert log.payload == payload
        assert log.ip_address == '10.0.0.1'
        assert log.processed is False

    def test_mark_outcome_is_idempotent(self):
        log = record({'data': {}}, provider='budpay')

        mark_outcome(log.id, error='boom', needs_review=True)
        mark_outcome(log.id, error='boom', needs_review=True)

        log.refresh_from_db()
        assert log.processed is True
        assert log.processing_error == 'boom'
        assert log.needs_review is True
        assert log.processed_at is not None


class TestProcessWebhook:
    def test_matched_event(self, make_order, mock_notify):
        order = make_order(amount='2500', virtual_account_number='1234567890')

        result = process_webhook(budpay_payload(amount='2500', craccount='1234567890'), 'budpay', META)

        assert result['success'] is True
        log = WebhookLog.objects.get()
        assert log.processed is True
        assert log.processing_error is None
        assert log.payment_id == order.payment.id
        assert log.order_id == order.id
        assert log.transaction_id is not None
        assert log.match_tier == 'dedicated_account'

    def test_duplicate_delivery(self, make_order, mock_notify):
        make_order(amount='2500')
        payload = budpay_payload(amount='2500')

        process_webhook(payload, 'budpay', META)
        result = process_webhook(payload, 'budpay', META)

        assert result == {'success': True, 'message': 'Transaction already processed'}
        assert Transaction.objects.count() == 1
        assert WebhookLog.objects.count() == 2
        assert mock_notify.call_count == 1

    def test_unmatched_event_is_recorded(self, make_order):
        make_order(amount='2500')

        result = process_webhook(budpay_payload(amount='10'), 'budpay', META)

        assert result['success'] is False
        log = WebhookLog.objects.get()
        assert log.processed is True
        assert log.processing_error == 'no matching payment'
        assert Payment.objects.get().status == Payment.Status.PENDING

    def test_ambiguous_event_queued_for_review(self, make_order):
        make_order(amount='2500')
        make_order(amount='2500')

        process_webhook(budpay_payload(amount='2500'), 'budpay', META)

        log = WebhookLog.objects.get()
        assert log.needs_review is True
        assert log.processing_error == 'ambiguous match'

    def test_malformed_payload(self):
        result = process_webhook({'notifyType': 'successful'}, 'budpay', META)

        assert result['success'] is False
        log = WebhookLog.objects.get()
        assert log.processed is True
        assert "data" in log.processing_error

    def test_unknown_event_is_processed_without_match(self):
        result = process_webhook(budpay_payload(notify_type='reversal', status='reversed'), 'budpay', META)

        assert result['success'] is True
        log = WebhookLog.objects.get()
        assert log.processed is True
        assert log.payment_id is None

    def test_unsupported_provider(self):
        result = process_webhook(budpay_payload(), 'paystack', META)

        assert result['success'] is False
        assert WebhookLog.objects.get().processing_error == 'Unsupported provider paystack'

    def test_unexpected_error_still_marks_processed(self, make_order, mocker):
        make_order(amount='2500')
        mocker.patch('payments.matcher.PaymentMatcher.handle', side_effect=RuntimeError('db down'))

        result = process_webhook(budpay_payload(amount='2500'), 'budpay', META)

        assert result == {'success': False, 'error': 'Webhook processing failed'}
        log = WebhookLog.objects.get()
        assert log.processed is True
        assert log.processing_error == 'db down'


class TestResolveWebhookLog:
    def test_operator_applies_queued_event(self, make_order, mock_notify):
        first = make_order(amount='2500')
        make_order(amount='2500')
        process_webhook(budpay_payload(amount='2500'), 'budpay', META)
        log = WebhookLog.objects.get()

        result = resolve_webhook_log(log, first.payment)

        log.refresh_from_db()
        assert result.transaction.match_tier == MANUAL
        assert log.needs_review is False
        assert log.transaction_id == result.transaction.id
        assert Payment.objects.get(id=first.payment.id).status == Payment.Status.COMPLETED

    def test_already_linked_log_is_rejected(self, make_order, mock_notify):
        order = make_order(amount='2500', virtual_account_number='1234567890')
        process_webhook(budpay_payload(amount='2500', craccount='1234567890'), 'budpay', META)
        log = WebhookLog.objects.get()

        with pytest.raises(IllegalTransition):
            resolve_webhook_log(log, order.payment)
