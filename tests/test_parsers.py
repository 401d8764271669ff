from decimal import Decimal

import pytest

from payments.parsers import FailedEvent, MalformedPayload, SuccessfulEvent, UnknownEvent, parse_budpay_event

from .helpers import budpay_payload


class TestClassification:
    def test_successful_notify_type(self):
        event = parse_budpay_event(budpay_payload(status=''))

        assert isinstance(event, SuccessfulEvent)
        assert event.reference == 'BUD_REF_1'
        assert event.amount == Decimal('2500')

    def test_success_status_without_notify_type(self):
        event = parse_budpay_event(budpay_payload(notify_type=None, status='success'))
        assert isinstance(event, SuccessfulEvent)

    def test_failed(self):
        event = parse_budpay_event(budpay_payload(notify_type='failed', status='failed'))
        assert isinstance(event, FailedEvent)

    def test_other_notification_is_unknown(self):
        event = parse_budpay_event(budpay_payload(notify_type='reversal', status='reversed'))

        assert isinstance(event, UnknownEvent)
        assert event.reference == 'BUD_REF_1'


class TestFields:
    def test_optional_fields_are_extracted(self):
        event = parse_budpay_event(budpay_payload(craccount='9934567890'))

        assert event.destination_account == '9934567890'
        assert event.currency == 'NGN'
        assert event.bank_name == 'Wema Bank'
        assert event.session_id == 'SESSION1'
        assert event.customer_email == 'payer@example.com'
        assert event.paid_at.year == 2024

    def test_account_number_fallback(self):
        event = parse_budpay_event(budpay_payload(account_number='123'))
        assert event.destination_account == '123'

    def test_requested_amount_used_when_amount_missing(self):
        payload = budpay_payload(amount=None, requested_amount='2515.50')
        assert parse_budpay_event(payload).amount == Decimal('2515.50')

    def test_missing_paid_at_defaults_to_now(self):
        payload = budpay_payload()
        del payload['data']['paid_at']

        assert parse_budpay_event(payload).paid_at is not None

    def test_raw_data_is_kept(self):
        event = parse_budpay_event(budpay_payload())
        assert event.raw['reference'] == 'BUD_REF_1'


class TestMalformed:
    @pytest.mark.parametrize('payload', [
        None,
        [],
        {'notifyType': 'successful'},
        {'notifyType': 'successful', 'data': 'nope'},
    ])
    def test_missing_data(self, payload):
        with pytest.raises(MalformedPayload):
            parse_budpay_event(payload)

    def test_missing_reference(self):
        with pytest.raises(MalformedPayload, match='reference'):
            parse_budpay_event(budpay_payload(reference=''))

    @pytest.mark.parametrize('amount', ['abc', '0', '-10', None])
    def test_bad_amount(self, amount):
        with pytest.raises(MalformedPayload):
            parse_budpay_event(budpay_payload(amount=amount))

    def test_bad_timestamp(self):
        with pytest.raises(MalformedPayload):
            parse_budpay_event(budpay_payload(paid_at='yesterday'))
