from rest_framework import serializers
from .models import Payment, Transaction, WebhookLog


class TransactionSerializer(serializers.ModelSerializer):
    """Serializer for gateway transactions."""

    class Meta:
        model = Transaction
        fields = [
            'id', 'external_reference', 'amount', 'currency', 'status',
            'match_tier', 'webhook_received', 'paid_at', 'created_at'
        ]
        read_only_fields = fields


class PaymentStatusSerializer(serializers.ModelSerializer):
    order_id = serializers.UUIDField(read_only=True)
    order_status = serializers.CharField(source='order.status', read_only=True)
    transaction = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            'id', 'order_id', 'order_status', 'status', 'amount', 'currency', 'method',
            'gateway_ref', 'virtual_account_number', 'bank_name', 'account_name',
            'crypto_amount', 'exchange_rate', 'transaction', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_transaction(self, obj):
        txn = obj.transactions.filter(status=Transaction.Status.COMPLETED).first()
        return TransactionSerializer(txn).data if txn else None


class WebhookLogSerializer(serializers.ModelSerializer):

    class Meta:
        model = WebhookLog
        fields = [
            'id', 'provider', 'event', 'processed', 'processing_error', 'needs_review',
            'match_tier', 'payment', 'order', 'transaction', 'received_at', 'processed_at'
        ]
        read_only_fields = fields


class InitiatePaymentSerializer(serializers.Serializer):
    PROVIDERS = ['budpay', 'crypto']

    order_id = serializers.UUIDField()
    provider = serializers.ChoiceField(choices=PROVIDERS)


class VerifyPaymentSerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=255, help_text="Our payment reference (gateway_ref)")
    transaction_reference = serializers.CharField(
        max_length=255, required=False, help_text="BudPay transaction reference, when known"
    )


class ResolveWebhookLogSerializer(serializers.Serializer):
    payment_id = serializers.UUIDField()
