"""
Correlate inbound gateway transactions with pending payments.

BudPay does not echo our payment reference back on bank transfers, so a
transaction is matched heuristically. Tiers, strongest first:

* ``dedicated_account``: paid into the virtual account issued for the payment
* ``exact_amount``: amount within tolerance of the payment amount
* ``fee_adjusted``: amount plus the known gateway fee within tolerance
* ``account_reference``: destination account appears in the gateway reference

A unique dedicated-account match is always trusted. Amount-only matches
are applied but flagged for review, and ties are queued for an operator
unless the tie policy says otherwise.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction

from orders.exceptions import IllegalTransition
from orders.state_machine import complete_payment, fail_payment
from .models import Payment, Transaction
from .parsers import FailedEvent, SuccessfulEvent, parse_budpay_event

logger = logging.getLogger(__name__)

DEDICATED_ACCOUNT = 'dedicated_account'
EXACT_AMOUNT = 'exact_amount'
FEE_ADJUSTED = 'fee_adjusted'
ACCOUNT_REFERENCE = 'account_reference'
MANUAL = 'manual'

AMOUNT_ONLY_TIERS = (EXACT_AMOUNT, FEE_ADJUSTED)

APPLY = 'apply'
REVIEW = 'review'
UNMATCHED = 'unmatched'

TIE_POLICIES = ('review', 'first_created')


@dataclass(frozen=True)
class MatchingConfig:
    amount_tolerance: Decimal = Decimal('1')
    known_fee: Decimal = Decimal('50')
    tie_policy: str = 'review'
    auto_apply_amount_only: bool = True

    def __post_init__(self):
        if self.tie_policy not in TIE_POLICIES:
            raise ValueError(f"Unknown tie policy {self.tie_policy!r}")

    @classmethod
    def from_settings(cls):
        return cls(
            amount_tolerance=Decimal(str(settings.PAYMENT_AMOUNT_TOLERANCE)),
            known_fee=Decimal(str(settings.BUDPAY_KNOWN_FEE)),
            tie_policy=settings.PAYMENT_MATCH_TIE_POLICY,
            auto_apply_amount_only=settings.PAYMENT_MATCH_AUTO_APPLY_AMOUNT_ONLY,
        )


@dataclass(frozen=True)
class MatchDecision:
    action: str
    candidates: tuple = ()
    payment: Payment = None
    tier: str = ''
    needs_review: bool = False
    reason: str = ''


@dataclass(frozen=True)
class MatchResult:
    payment: Payment = None
    order: object = None
    transaction: Transaction = None
    created: bool = False
    already_processed: bool = False
    needs_review: bool = False
    match_tier: str = ''
    error: str = ''

    @property
    def matched(self):
        return self.transaction is not None


def _existing_result(existing, tier=''):
    return MatchResult(
        payment=existing.payment,
        order=existing.payment.order,
        transaction=existing,
        created=False,
        already_processed=True,
        match_tier=existing.match_tier or tier,
    )


def find_existing_transaction(reference):
    return (
        Transaction.objects.select_related('payment__order')
        .filter(external_reference=reference)
        .first()
    )


class PaymentMatcher:

    def __init__(self, config=None):
        self.config = config or MatchingConfig.from_settings()

    def match_tier(self, event, payment):
        """First tier `event` satisfies for `payment`, or None."""
        account = event.destination_account
        received = event.amount
        tolerance = self.config.amount_tolerance

        if payment.currency != event.currency:
            return None
        if account and payment.virtual_account_number and account == payment.virtual_account_number:
            return DEDICATED_ACCOUNT
        if abs(payment.amount - received) < tolerance:
            return EXACT_AMOUNT
        if abs(payment.amount - (received + self.config.known_fee)) < tolerance:
            return FEE_ADJUSTED
        if account and account in payment.gateway_ref:
            return ACCOUNT_REFERENCE
        return None

    def pending_payments(self, currency='NGN'):
        return (
            Payment.objects.filter(status=Payment.Status.PENDING, method=Payment.Method.NGN, currency=currency)
            .select_related('order')
            .order_by('created_at', 'id')
        )

    def evaluate(self, event):
        """
        Decide what to do with an event without writing anything.

        Returns:
            MatchDecision
        """
        pending = list(self.pending_payments(event.currency))
        candidates = []
        for payment in pending:
            tier = self.match_tier(event, payment)
            if tier:
                candidates.append((payment, tier))

        strong = [c for c in candidates if c[1] == DEDICATED_ACCOUNT]
        if strong:
            candidates = strong

        if not candidates:
            context = ', '.join(
                f"{p.id}:{p.amount}:{p.gateway_ref}:{p.virtual_account_number or '-'}" for p in pending
            )
            logger.warning(
                f"No pending payment matches {event.reference} "
                f"(amount={event.amount}, account={event.destination_account or '-'}); "
                f"pending candidates: [{context}]"
            )
            return MatchDecision(action=UNMATCHED, reason='no matching payment')

        if len(candidates) > 1:
            summary = ', '.join(f"{p.id}({tier})" for p, tier in candidates)
            if self.config.tie_policy == 'first_created':
                payment, tier = candidates[0]
                logger.warning(
                    f"Ambiguous match for {event.reference}, applying first created payment {payment.id}: [{summary}]"
                )
                return MatchDecision(
                    action=APPLY,
                    candidates=tuple(candidates),
                    payment=payment,
                    tier=tier,
                    needs_review=True,
                    reason='ambiguous match',
                )
            logger.warning(f"Ambiguous match for {event.reference}, queued for review: [{summary}]")
            return MatchDecision(
                action=REVIEW,
                candidates=tuple(candidates),
                needs_review=True,
                reason='ambiguous match',
            )

        payment, tier = candidates[0]
        if tier in AMOUNT_ONLY_TIERS:
            if not self.config.auto_apply_amount_only:
                logger.warning(f"Amount-only match {tier} for {event.reference} -> payment {payment.id} queued for review")
                return MatchDecision(
                    action=REVIEW,
                    candidates=tuple(candidates),
                    payment=payment,
                    tier=tier,
                    needs_review=True,
                    reason='amount-only match',
                )
            return MatchDecision(
                action=APPLY,
                candidates=tuple(candidates),
                payment=payment,
                tier=tier,
                needs_review=True,
                reason='amount-only match',
            )

        return MatchDecision(action=APPLY, candidates=tuple(candidates), payment=payment, tier=tier)

    def apply(self, event, payment, tier, webhook_received=True):
        """
        Record the gateway transaction against `payment` and settle it.

        Returns:
            MatchResult; a reference seen before comes back unchanged with
            ``already_processed`` set.

        Raises:
            IllegalTransition: the payment is no longer pending
        """
        existing = find_existing_transaction(event.reference)
        if existing is not None:
            return _existing_result(existing, tier)

        succeeded = isinstance(event, SuccessfulEvent)
        if not succeeded and not isinstance(event, FailedEvent):
            raise ValueError(f"Cannot apply event of type {type(event).__name__}")

        try:
            with transaction.atomic():
                payment = Payment.objects.select_for_update().select_related('order').get(pk=payment.pk)
                if not payment.can_be_settled():
                    raise IllegalTransition(
                        f"Payment {payment.id} is already {payment.status}; "
                        f"gateway transaction {event.reference} needs manual handling",
                        current=payment.status,
                    )
                if payment.currency != event.currency:
                    raise IllegalTransition(
                        f"Gateway transaction {event.reference} is in {event.currency}, "
                        f"payment {payment.id} expects {payment.currency}",
                        current=payment.status,
                    )

                txn = Transaction.objects.create(
                    payment=payment,
                    external_reference=event.reference,
                    local_reference=payment.gateway_ref,
                    amount=event.amount,
                    currency=event.currency,
                    status=Transaction.Status.COMPLETED if succeeded else Transaction.Status.FAILED,
                    gateway_status=event.gateway_status,
                    match_tier=tier,
                    account_number=event.destination_account,
                    bank_name=event.bank_name,
                    customer_email=event.customer_email,
                    narration=event.narration,
                    session_id=event.session_id,
                    paid_at=event.paid_at,
                    webhook_received=webhook_received,
                    webhook_data=event.raw,
                )

                if succeeded:
                    payment = complete_payment(payment, settled_by=txn)
                else:
                    payment = fail_payment(payment)
        except IntegrityError:
            existing = find_existing_transaction(event.reference)
            if existing is None:
                raise
            logger.warning(f"Gateway transaction {event.reference} recorded concurrently, treating as duplicate")
            return _existing_result(existing, tier)

        logger.info(
            f"Gateway transaction {event.reference} applied to payment {payment.id} "
            f"(order {payment.order_id}, tier={tier}, status={txn.status})"
        )
        return MatchResult(
            payment=payment,
            order=payment.order,
            transaction=txn,
            created=True,
            match_tier=tier,
        )

    def handle(self, event):
        """
        Match and apply one parsed event.

        Returns:
            MatchResult; ``error`` is set when nothing was applied
        """
        existing = find_existing_transaction(event.reference)
        if existing is not None:
            logger.warning(f"Gateway transaction {event.reference} already processed as {existing.id}")
            return _existing_result(existing)

        decision = self.evaluate(event)
        if decision.action != APPLY:
            return MatchResult(
                payment=decision.payment,
                order=decision.payment.order if decision.payment else None,
                needs_review=decision.needs_review,
                match_tier=decision.tier,
                error=decision.reason,
            )

        result = self.apply(event, decision.payment, decision.tier)
        if result.already_processed:
            return result
        return replace(result, needs_review=decision.needs_review)


def resolve_webhook_log(log, payment, matcher=None):
    """
    Apply a logged event to an operator-chosen pending payment.

    Raises:
        MalformedPayload: the logged payload cannot be parsed
        IllegalTransition: the log is already settled or the payment is not pending
    """
    from .ledger import mark_outcome

    if log.transaction_id is not None:
        raise IllegalTransition(f"Webhook log {log.id} is already linked to transaction {log.transaction_id}")

    event = parse_budpay_event(log.payload)
    if not isinstance(event, (SuccessfulEvent, FailedEvent)):
        raise IllegalTransition(f"Webhook log {log.id} does not describe a payment outcome")

    matcher = matcher or PaymentMatcher()
    result = matcher.apply(event, payment, MANUAL)

    mark_outcome(
        log.id,
        processed=True,
        payment_id=result.payment.id,
        order_id=result.payment.order_id,
        transaction_id=result.transaction.id,
        needs_review=False,
        match_tier=result.match_tier,
    )
    logger.info(f"Webhook log {log.id} resolved manually against payment {payment.id}")
    return result
