"""BudPay payment gateway integration utilities."""

import logging
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """BudPay could not be reached or answered with an error."""


def _request(method, path, payload=None):
    """
    Call the BudPay API and return the ``data`` member of a successful response.

    Raises:
        GatewayError: transport failure, non-JSON body or ``status`` false
    """
    url = f"{settings.BUDPAY_API_URL.rstrip('/')}/{path.lstrip('/')}"
    headers = {
        'Authorization': f"Bearer {settings.BUDPAY_SECRET_KEY}",
        'Content-Type': 'application/json',
    }

    try:
        resp = requests.request(method, url, json=payload, headers=headers, timeout=settings.BUDPAY_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"BudPay {method} {path} failed: {str(e)}")
        raise GatewayError(f"BudPay request failed: {e}") from e

    try:
        body = resp.json()
    except ValueError as e:
        raise GatewayError(f"Non-JSON BudPay response (HTTP {resp.status_code})") from e

    if resp.status_code >= 400 or not isinstance(body, dict) or body.get('status') is not True:
        message = body.get('message') if isinstance(body, dict) else None
        raise GatewayError(f"BudPay {path} error (HTTP {resp.status_code}): {message or 'unknown error'}")

    return body.get('data') or {}


def create_virtual_account(payment, customer_email=None):
    """
    Issue a dedicated virtual account for a payment.

    Args:
        payment: Payment instance (not saved here)
        customer_email: optional email to register the gateway customer with

    Returns:
        dict: account_number, account_name, bank_name, bank_code
    """
    short_ref = str(payment.order_id).split('-')[0]
    first_name, last_name = 'Boost', short_ref.title()

    customer = _request('POST', '/customer', {
        'email': customer_email or f"order-{short_ref}@boostlab.com",
        'first_name': first_name,
        'last_name': last_name,
        'phone': '',
    })
    customer_code = customer.get('customer_code')
    if not customer_code:
        raise GatewayError("BudPay did not return a customer code")

    account = _request('POST', '/dedicated_virtual_account', {
        'customer': customer_code,
        'first_name': first_name,
        'last_name': last_name,
    })

    try:
        details = {
            'account_number': str(account['account_number']),
            'account_name': account.get('account_name') or '',
            'bank_name': (account.get('bank') or {}).get('name', ''),
            'bank_code': (account.get('bank') or {}).get('bank_code', ''),
        }
    except (KeyError, TypeError, AttributeError) as e:
        raise GatewayError(f"Unexpected virtual account payload: {account!r}") from e

    logger.info(f"Virtual account {details['account_number']} issued for payment {payment.id}")
    return details


def verify_payment(reference):
    """
    Ask BudPay for the current state of a transaction.

    Returns:
        dict: status ('success', 'failed' or 'pending'), reference, amount,
        currency, paid_at, customer_email and the raw gateway data
    """
    data = _request('GET', f"/transaction/verify/{reference}")

    gateway_status = str(data.get('status') or '').lower()
    if gateway_status == 'success':
        status = 'success'
    elif gateway_status == 'failed':
        status = 'failed'
    else:
        status = 'pending'

    try:
        amount = Decimal(str(data.get('amount') or data.get('requested_amount') or '0'))
    except (InvalidOperation, ValueError):
        amount = Decimal('0')

    customer = data.get('customer')
    logger.info(f"BudPay verification for {reference}: {status} ({amount})")
    return {
        'status': status,
        'reference': data.get('reference') or reference,
        'amount': amount,
        'currency': data.get('currency') or 'NGN',
        'paid_at': data.get('transaction_date') or data.get('paid_at'),
        'customer_email': customer.get('email') if isinstance(customer, dict) else None,
        'raw': data,
    }
