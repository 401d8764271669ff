"""Turn raw BudPay webhook payloads into typed events."""

from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_datetime


class MalformedPayload(ValueError):
    """The payload is missing required fields or carries unusable values."""


@dataclass(frozen=True)
class GatewayEvent:
    reference: str
    amount: Decimal
    currency: str = 'NGN'
    destination_account: str = ''
    paid_at: datetime = None
    narration: str = ''
    bank_name: str = ''
    session_id: str = ''
    customer_email: str = ''
    gateway_status: str = ''
    raw: dict = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class SuccessfulEvent(GatewayEvent):
    pass


@dataclass(frozen=True)
class FailedEvent(GatewayEvent):
    pass


@dataclass(frozen=True)
class UnknownEvent:
    notify_type: str = ''
    gateway_status: str = ''
    reference: str = ''


def _first(data, *keys):
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None


def _parse_amount(data):
    raw = _first(data, 'amount', 'requested_amount')
    try:
        amount = Decimal(str(raw).replace(',', ''))
    except (InvalidOperation, TypeError, ValueError):
        raise MalformedPayload(f"Unparseable amount {raw!r}")
    if not amount.is_finite() or amount <= 0:
        raise MalformedPayload(f"Amount must be positive, got {raw!r}")
    return amount


def _parse_paid_at(data):
    raw = _first(data, 'paid_at', 'created_at')
    if raw is None:
        return timezone.now()
    try:
        parsed = parse_datetime(str(raw))
    except ValueError:
        parsed = None
    if parsed is None:
        raise MalformedPayload(f"Unparseable timestamp {raw!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def parse_budpay_event(payload):
    """
    Classify and validate a BudPay notification.

    Returns:
        SuccessfulEvent, FailedEvent or UnknownEvent

    Raises:
        MalformedPayload: for a payload that cannot be interpreted
    """
    if not isinstance(payload, dict):
        raise MalformedPayload("Payload must be a JSON object")

    data = payload.get('data')
    if not isinstance(data, dict):
        raise MalformedPayload("Missing 'data' object")

    reference = data.get('reference')
    if not isinstance(reference, str) or not reference.strip():
        raise MalformedPayload("Missing transaction reference")
    reference = reference.strip()

    notify_type = str(payload.get('notifyType') or '').lower()
    gateway_status = str(data.get('status') or '').lower()

    if notify_type == 'successful' or gateway_status == 'success':
        event_class = SuccessfulEvent
    elif notify_type == 'failed' or gateway_status == 'failed':
        event_class = FailedEvent
    else:
        return UnknownEvent(notify_type=notify_type, gateway_status=gateway_status, reference=reference)

    customer = data.get('customer')
    customer_email = customer.get('email') if isinstance(customer, dict) else None

    return event_class(
        reference=reference,
        amount=_parse_amount(data),
        currency=str(data.get('currency') or 'NGN').upper(),
        destination_account=str(_first(data, 'craccount', 'account_number', 'accountnumber') or ''),
        paid_at=_parse_paid_at(data),
        narration=str(data.get('narration') or ''),
        bank_name=str(_first(data, 'bankname', 'bank_name') or ''),
        session_id=str(_first(data, 'sessionid', 'session_id') or ''),
        customer_email=str(customer_email or data.get('customer_email') or ''),
        gateway_status=gateway_status,
        raw=data,
    )
