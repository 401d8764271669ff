import uuid
from django.db import models


class Notification(models.Model):
    """A message sent to a customer about their order or payment."""

    class Kind(models.TextChoices):
        PAYMENT_RECEIVED = 'payment_received', 'Payment received'
        ORDER_PROCESSING = 'order_processing', 'Order processing'
        ORDER_COMPLETED = 'order_completed', 'Order completed'
        ORDER_CANCELLED = 'order_cancelled', 'Order cancelled'
        ORDER_FAILED = 'order_failed', 'Order failed'
        ORDER_PARTIAL = 'order_partial', 'Order partially delivered'

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        SENT = 'sent', 'Sent'
        FAILED = 'failed', 'Failed'
        SKIPPED = 'skipped', 'Skipped'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey('users.User', on_delete=models.CASCADE, related_name='notifications')
    order = models.ForeignKey('orders.Order', on_delete=models.SET_NULL, null=True, blank=True, related_name='notifications')
    kind = models.CharField(max_length=30, choices=Kind.choices)
    title = models.CharField(max_length=255)
    body = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    error = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    sent_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.kind} -> {self.user_id} ({self.status})"
