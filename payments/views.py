import json
import logging
from django.conf import settings
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import csrf_exempt
from rest_framework import generics, permissions, status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.exceptions import ParseError, UnsupportedMediaType
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from orders.exceptions import IllegalTransition
from orders.models import Order
from services.pricing import PricingConfig
from users.permissions import IsAdmin
from .ledger import process_webhook, queue_for_review
from .matcher import AMOUNT_ONLY_TIERS, PaymentMatcher, find_existing_transaction, resolve_webhook_log
from .models import Payment, Transaction, WebhookLog
from .parsers import MalformedPayload, SuccessfulEvent, parse_budpay_event
from .serializers import (
    InitiatePaymentSerializer,
    PaymentStatusSerializer,
    ResolveWebhookLogSerializer,
    TransactionSerializer,
    VerifyPaymentSerializer,
    WebhookLogSerializer,
)
from .utils import GatewayError, create_virtual_account, verify_payment

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {'authorization', 'cookie'}


def _error(message, http_status):
    return Response({'success': False, 'message': message}, status=http_status)


def _request_meta(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    ip_address = forwarded.split(',')[0].strip() if forwarded else request.META.get('REMOTE_ADDR')
    return {
        'headers': {k: v for k, v in request.headers.items() if k.lower() not in SENSITIVE_HEADERS},
        'ip_address': ip_address or None,
        'user_agent': request.META.get('HTTP_USER_AGENT', ''),
    }


def _decode_body(raw_body):
    """Best-effort JSON decode of a body DRF refused; falls back to the raw text."""
    text = raw_body.decode('utf-8', errors='replace')
    try:
        decoded = json.loads(text)
    except ValueError:
        return {'raw': text}
    return decoded if isinstance(decoded, dict) else {'raw': text}


@csrf_exempt
@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def payment_webhook_view(request, provider):
    """
    Handle gateway webhook POST requests.

    POST /api/payments/webhook/{provider}/

    The notification is logged before it is interpreted, matched against
    pending payments and applied. Always answers 200 so the gateway does
    not retry; failures are kept on the webhook log for review.
    """
    raw_body = request.body
    try:
        payload = request.data
    except (ParseError, UnsupportedMediaType) as e:
        logger.warning(f"Webhook from {provider} with unreadable body ({request.content_type}): {str(e)}")
        payload = _decode_body(raw_body)

    if hasattr(payload, 'dict'):
        payload = payload.dict()

    result = process_webhook(payload, provider.lower(), _request_meta(request))
    return Response(result, status=status.HTTP_200_OK)


class InitiatePaymentView(generics.GenericAPIView):
    """
    Issue payment instructions for an order.

    POST /api/payments/initiate/ - Order owner or admin

    budpay: a dedicated virtual account to transfer into
    crypto: the USDT amount and wallet to send it to
    """

    serializer_class = InitiatePaymentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = get_object_or_404(Order.objects.select_related('payment', 'customer'), id=data['order_id'])
        if not request.user.can_view_order(order):
            self.permission_denied(request)

        payment = getattr(order, 'payment', None)
        if payment is None:
            return _error('Order has no payment record', status.HTTP_404_NOT_FOUND)
        if payment.status == Payment.Status.COMPLETED:
            return _error('Payment already completed for this order', status.HTTP_409_CONFLICT)
        if payment.status != Payment.Status.PENDING:
            return _error(f'Payment is {payment.status}', status.HTTP_409_CONFLICT)

        if data['provider'] == 'budpay':
            if not payment.virtual_account_number:
                try:
                    account = create_virtual_account(payment, customer_email=order.customer.email if order.customer else None)
                except GatewayError as e:
                    logger.error(f"Virtual account creation failed for payment {payment.id}: {str(e)}")
                    return _error(str(e), status.HTTP_502_BAD_GATEWAY)

                payment.virtual_account_number = account['account_number']
                payment.bank_name = account['bank_name']
                payment.account_name = account['account_name']
                payment.method = Payment.Method.NGN
                payment.save(update_fields=['virtual_account_number', 'bank_name', 'account_name', 'method', 'updated_at'])

            instructions = {
                'provider': 'budpay',
                'account_number': payment.virtual_account_number,
                'bank_name': payment.bank_name,
                'account_name': payment.account_name,
                'amount': str(payment.amount),
                'currency': payment.currency,
                'reference': payment.gateway_ref,
            }
        else:
            pricing = PricingConfig.from_settings()
            if payment.currency == 'NGN':
                crypto_amount = pricing.to_usdt(payment.amount)
                exchange_rate = pricing.usdt_exchange_rate
            else:
                crypto_amount = payment.amount
                exchange_rate = 1

            payment.crypto_amount = crypto_amount
            payment.exchange_rate = exchange_rate
            payment.method = Payment.Method.CRYPTO
            payment.save(update_fields=['crypto_amount', 'exchange_rate', 'method', 'updated_at'])

            instructions = {
                'provider': 'crypto',
                'wallet_address': settings.CRYPTO_WALLET_ADDRESS,
                'network': settings.CRYPTO_NETWORK,
                'currency': 'USDT',
                'amount': str(crypto_amount),
                'exchange_rate': str(exchange_rate),
                'reference': payment.gateway_ref,
            }

        logger.info(f"Payment {payment.id} initiated via {data['provider']} for order {order.id}")
        return Response(
            {
                'success': True,
                'message': 'Payment initiated',
                'data': {'payment_id': str(payment.id), 'order_id': str(order.id), **instructions}
            },
            status=status.HTTP_200_OK
        )


class VerifyPaymentView(generics.GenericAPIView):
    """
    Check whether a payment has settled.

    POST /api/payments/verify/ - Order owner or admin

    A completed transaction on record is returned as is. Otherwise a BudPay
    payment is checked against the gateway and settled only on a positive,
    matching success. A customer-supplied reference that matches on amount
    alone is logged for an operator instead of being applied.
    """

    serializer_class = VerifyPaymentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def _respond(self, payment, verification_status, message, transaction=None):
        return Response(
            {
                'success': verification_status == 'success',
                'message': message,
                'data': {
                    'status': verification_status,
                    'payment_id': str(payment.id),
                    'order_id': str(payment.order_id),
                    'transaction': TransactionSerializer(transaction).data if transaction else None,
                }
            },
            status=status.HTTP_200_OK
        )

    def post(self, request):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payment = get_object_or_404(Payment.objects.select_related('order'), gateway_ref=data['reference'])
        if not request.user.can_view_order(payment.order):
            self.permission_denied(request)

        completed = payment.transactions.filter(status=Transaction.Status.COMPLETED).first()
        if completed is not None:
            return self._respond(payment, 'success', 'Payment already verified', completed)

        if payment.status == Payment.Status.FAILED:
            return self._respond(payment, 'failed', 'Payment failed')

        if payment.method != Payment.Method.NGN:
            return self._respond(payment, 'pending', 'Crypto payments are confirmed by an operator')

        reference = data.get('transaction_reference') or payment.gateway_ref
        existing = find_existing_transaction(reference)
        if existing is not None:
            if existing.payment_id != payment.id:
                logger.warning(
                    f"Transaction {reference} belongs to payment {existing.payment_id}, not payment {payment.id}"
                )
                return self._respond(payment, 'pending', 'Transaction does not belong to this payment')
            return self._respond(payment, existing.status, 'Transaction already recorded', existing)

        try:
            verification = verify_payment(reference)
        except GatewayError as e:
            logger.warning(f"Verification of payment {payment.id} via {reference} failed: {str(e)}")
            return _error(str(e), status.HTTP_502_BAD_GATEWAY)

        if verification['status'] != 'success':
            return self._respond(payment, verification['status'], f"Gateway reports {verification['status']}")

        try:
            event = parse_budpay_event({
                'notifyType': 'successful',
                'data': {**verification['raw'], 'reference': verification['reference']},
            })
        except MalformedPayload as e:
            logger.warning(f"Unusable verification payload for payment {payment.id}: {str(e)}")
            return self._respond(payment, 'pending', str(e))

        matcher = PaymentMatcher()
        tier = matcher.match_tier(event, payment) if isinstance(event, SuccessfulEvent) else None
        if tier is None:
            logger.warning(
                f"Verified transaction {event.reference} ({event.amount}) does not match payment {payment.id} ({payment.amount})"
            )
            return self._respond(payment, 'pending', 'Gateway transaction does not match this payment')

        if tier in AMOUNT_ONLY_TIERS and reference != payment.gateway_ref:
            queue_for_review(event, payment, tier, _request_meta(request))
            return self._respond(payment, 'pending', 'Transaction matched on amount only, queued for review')

        try:
            result = matcher.apply(event, payment, tier, webhook_received=False)
        except IllegalTransition as e:
            return _error(str(e), status.HTTP_409_CONFLICT)

        payment.refresh_from_db()
        return self._respond(payment, 'success', 'Payment verified', result.transaction)


class PaymentStatusView(generics.GenericAPIView):
    """
    GET /api/payments/status/{order_id}/ - Order owner or admin
    """

    serializer_class = PaymentStatusSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, order_id):
        payment = get_object_or_404(Payment.objects.select_related('order'), order_id=order_id)
        if not request.user.can_view_order(payment.order):
            self.permission_denied(request)

        return Response(
            {
                'success': True,
                'message': 'Payment status retrieved successfully',
                'data': self.get_serializer(payment).data
            },
            status=status.HTTP_200_OK
        )


class ListReviewWebhookLogsView(generics.ListAPIView):
    """
    Webhooks an operator needs to look at.

    GET /api/payments/webhook-logs/review/ - Admins only
    """

    serializer_class = WebhookLogSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get_queryset(self):
        return WebhookLog.objects.filter(needs_review=True, transaction__isnull=True)

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(
            {
                'success': True,
                'message': 'Webhook logs retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class ResolveWebhookLogView(generics.GenericAPIView):
    """
    Apply a logged webhook to a payment chosen by an operator.

    POST /api/payments/webhook-logs/{id}/resolve/ - Admins only
    """

    serializer_class = ResolveWebhookLogSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request, id):
        log = get_object_or_404(WebhookLog, id=id)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = get_object_or_404(Payment, id=serializer.validated_data['payment_id'])

        try:
            result = resolve_webhook_log(log, payment)
        except MalformedPayload as e:
            return _error(str(e), status.HTTP_400_BAD_REQUEST)
        except IllegalTransition as e:
            return _error(str(e), status.HTTP_409_CONFLICT)

        log.refresh_from_db()
        return Response(
            {
                'success': True,
                'message': 'Webhook resolved',
                'data': {
                    'webhook_log': WebhookLogSerializer(log).data,
                    'transaction': TransactionSerializer(result.transaction).data,
                }
            },
            status=status.HTTP_200_OK
        )
