"""
Durable record of every inbound gateway notification.

Each webhook is stored before it is interpreted, so a payload that later
fails to parse or match is still available for replay and manual review.
"""

import logging
from django.utils import timezone

from orders.exceptions import IllegalTransition
from .models import WebhookLog
from .parsers import MalformedPayload, UnknownEvent, parse_budpay_event

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ('budpay',)


def record(payload, *, provider, headers=None, ip_address=None, user_agent=''):
    """Persist a raw notification. Runs in autocommit so the row survives later failures."""
    event = payload.get('notifyType') if isinstance(payload, dict) else None
    log = WebhookLog.objects.create(
        provider=provider,
        event=str(event or 'unknown')[:100],
        payload=payload if isinstance(payload, (dict, list)) else {'raw': payload},
        headers=headers or {},
        ip_address=ip_address,
        user_agent=(user_agent or '')[:500],
    )
    logger.info(f"Webhook log {log.id} recorded ({provider}:{log.event})")
    return log


def mark_outcome(log_id, *, processed=True, error=None, payment_id=None, order_id=None,
                 transaction_id=None, needs_review=False, match_tier=''):
    """Store how a logged notification was handled. Safe to call repeatedly."""
    WebhookLog.objects.filter(id=log_id).update(
        processed=processed,
        processing_error=error,
        payment_id=payment_id,
        order_id=order_id,
        transaction_id=transaction_id,
        needs_review=needs_review,
        match_tier=match_tier or '',
        processed_at=timezone.now(),
    )


def queue_for_review(event, payment, tier, meta=None):
    """
    Log a gateway transaction for an operator to resolve against `payment`.

    Used when a match is too weak to apply unattended. A reference already
    waiting for review is not logged twice.

    Returns:
        WebhookLog
    """
    log = WebhookLog.objects.filter(
        needs_review=True,
        transaction__isnull=True,
        payload__data__reference=event.reference,
    ).first()
    if log is not None:
        return log

    payload = {'notifyType': 'successful', 'data': {**event.raw, 'reference': event.reference}}
    log = record(payload, provider='budpay', **(meta or {}))
    mark_outcome(
        log.id,
        processed=True,
        error='amount-only match',
        payment_id=payment.id,
        order_id=payment.order_id,
        needs_review=True,
        match_tier=tier,
    )
    logger.warning(f"Gateway transaction {event.reference} queued for review against payment {payment.id} ({tier})")
    return log


def process_webhook(payload, provider, meta=None):
    """
    Record, parse, match and apply one gateway notification.

    Never raises; the caller answers the gateway with HTTP 200 regardless.

    Returns:
        dict: success plus error/message
    """
    from .matcher import PaymentMatcher

    log = record(payload, provider=provider, **(meta or {}))
    outcome = {'processed': True}

    try:
        if provider not in SUPPORTED_PROVIDERS:
            outcome['error'] = f"Unsupported provider {provider}"
            logger.warning(f"Webhook log {log.id}: unsupported provider {provider}")
            return {'success': False, 'error': outcome['error']}

        event = parse_budpay_event(payload)

        if isinstance(event, UnknownEvent):
            logger.info(
                f"Webhook log {log.id}: ignoring notifyType={event.notify_type!r} status={event.gateway_status!r}"
            )
            return {'success': True, 'message': 'Event ignored'}

        result = PaymentMatcher().handle(event)
        outcome.update(
            needs_review=result.needs_review,
            match_tier=result.match_tier,
            payment_id=result.payment.id if result.payment else None,
            order_id=result.payment.order_id if result.payment else None,
            transaction_id=result.transaction.id if result.transaction else None,
            error=result.error or None,
        )

        if result.already_processed:
            return {'success': True, 'message': 'Transaction already processed'}
        if not result.matched:
            return {'success': False, 'error': result.error}
        return {'success': True, 'message': 'Payment processed successfully'}

    except MalformedPayload as e:
        logger.warning(f"Webhook log {log.id}: malformed payload: {str(e)}")
        outcome['error'] = str(e)
        return {'success': False, 'error': str(e)}
    except IllegalTransition as e:
        logger.warning(f"Webhook log {log.id}: {str(e)}")
        outcome.update(error=str(e), needs_review=True)
        return {'success': False, 'error': str(e)}
    except Exception as e:
        logger.exception(f"Webhook log {log.id}: processing failed: {str(e)}")
        outcome['error'] = str(e)
        return {'success': False, 'error': 'Webhook processing failed'}
    finally:
        mark_outcome(log.id, **outcome)
