import uuid
from django.db import models


class Order(models.Model):
    """One customer's request for N units of a catalog service."""

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        PROCESSING = 'processing', 'Processing'
        COMPLETED = 'completed', 'Completed'
        CANCELLED = 'cancelled', 'Cancelled'
        FAILED = 'failed', 'Failed'

    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED, Status.FAILED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    customer = models.ForeignKey('users.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='orders')
    platform = models.ForeignKey('services.Platform', on_delete=models.PROTECT, related_name='orders')
    service = models.ForeignKey('services.Service', on_delete=models.PROTECT, related_name='orders')
    quantity = models.PositiveIntegerField()
    link = models.URLField(max_length=500)
    price = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=10, default='NGN')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Set once the order is dispatched upstream
    provider_service = models.ForeignKey(
        'services.Service', on_delete=models.PROTECT, null=True, blank=True, related_name='dispatched_orders'
    )
    provider_order_id = models.CharField(max_length=100, null=True, blank=True, unique=True)
    provider_quantity = models.PositiveIntegerField(null=True, blank=True)
    provider_charge = models.DecimalField(max_digits=12, decimal_places=5, null=True, blank=True)
    provider_status = models.CharField(max_length=50, blank=True)
    start_count = models.PositiveIntegerField(null=True, blank=True)
    remains = models.PositiveIntegerField(null=True, blank=True)

    cancel_reason = models.TextField(blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    last_synced_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer', 'status'], name='order_customer_status_idx'),
            models.Index(fields=['status', 'created_at'], name='order_status_created_idx'),
        ]

    def __str__(self):
        return f"Order {self.id} - {self.status}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def payment_completed(self):
        payment = getattr(self, 'payment', None)
        return payment is not None and payment.status == payment.Status.COMPLETED

    def can_start_processing(self):
        """Dispatch is allowed only for a pending order whose payment settled."""
        return self.status == self.Status.PENDING and self.payment_completed()

    def can_be_cancelled(self):
        return self.status in (self.Status.PENDING, self.Status.PROCESSING)

    def can_apply_provider_status(self):
        return self.status == self.Status.PROCESSING and bool(self.provider_order_id)
