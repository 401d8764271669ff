import uuid
from django.db import models
from django.db.models import Q


class Payment(models.Model):
    """Monetary obligation attached to exactly one order."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    class Method(models.TextChoices):
        NGN = 'ngn', 'Bank transfer (NGN)'
        CRYPTO = 'crypto', 'Crypto (USDT)'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.OneToOneField('orders.Order', on_delete=models.CASCADE, related_name='payment')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=10, default='NGN')
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.NGN)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    gateway_ref = models.CharField(max_length=255, unique=True, help_text="Correlation reference embedding the order id")

    # Dedicated virtual account issued by the gateway for this payment
    virtual_account_number = models.CharField(max_length=30, blank=True, db_index=True)
    bank_name = models.CharField(max_length=100, blank=True)
    account_name = models.CharField(max_length=255, blank=True)

    crypto_amount = models.DecimalField(max_digits=18, decimal_places=6, null=True, blank=True)
    exchange_rate = models.DecimalField(max_digits=12, decimal_places=4, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['status', 'method', 'created_at'], name='payment_pending_lookup_idx'),
        ]

    def __str__(self):
        return f"Payment {self.id} ({self.amount} {self.currency}) - {self.status}"

    def can_be_settled(self):
        """Only a pending payment may move to completed or failed."""
        return self.status == self.Status.PENDING


class Transaction(models.Model):
    """A matched monetary movement linking one gateway event to a payment."""

    class Status(models.TextChoices):
        COMPLETED = 'completed', 'Completed'
        FAILED = 'failed', 'Failed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='transactions')
    external_reference = models.CharField(max_length=255, unique=True, help_text="Gateway transaction reference")
    local_reference = models.CharField(max_length=255, blank=True)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=10, default='NGN')
    status = models.CharField(max_length=20, choices=Status.choices)
    gateway_status = models.CharField(max_length=50, blank=True)
    match_tier = models.CharField(max_length=30, blank=True)
    account_number = models.CharField(max_length=30, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    customer_email = models.CharField(max_length=255, blank=True)
    narration = models.TextField(blank=True)
    session_id = models.CharField(max_length=255, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    webhook_received = models.BooleanField(default=True, help_text="False when settled by an API verification poll")
    webhook_data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['payment'],
                condition=Q(status='completed'),
                name='one_completed_transaction_per_payment',
            ),
        ]

    def __str__(self):
        return f"Transaction {self.external_reference} - {self.status}"


class WebhookLog(models.Model):
    """Immutable record of one inbound gateway notification, matched or not."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    provider = models.CharField(max_length=50)
    event = models.CharField(max_length=100, default='unknown')
    payload = models.JSONField(default=dict, help_text="Raw webhook payload")
    headers = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=500, blank=True)

    processed = models.BooleanField(default=False)
    processing_error = models.TextField(null=True, blank=True)
    needs_review = models.BooleanField(default=False)
    match_tier = models.CharField(max_length=30, blank=True)
    payment = models.ForeignKey(Payment, on_delete=models.SET_NULL, null=True, blank=True, related_name='webhook_logs')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='webhook_logs')
    transaction = models.ForeignKey(Transaction, on_delete=models.SET_NULL, null=True, blank=True, related_name='webhook_logs')

    received_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-received_at']
        indexes = [
            models.Index(fields=['provider', 'processed'], name='webhooklog_processed_idx'),
            models.Index(fields=['needs_review', 'received_at'], name='webhooklog_review_idx'),
        ]

    def __str__(self):
        return f"WebhookLog {self.id} ({self.provider}:{self.event})"
