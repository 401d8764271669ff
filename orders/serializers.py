import time
from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from payments.models import Payment
from services.pricing import PricingConfig
from services.utils import SERVICE_TYPE_TERMS, find_best_service, get_or_create_platform
from .models import Order

PRICE_TOLERANCE = Decimal('0.05')


def build_gateway_ref(order):
    """Correlation reference embedding the order id, e.g. ``boost_<uuid>_<epoch ms>``."""
    return f"boost_{order.id}_{int(time.time() * 1000)}"


class QuoteMixin:
    """Resolve the catalog service and price for platform/service/quantity input."""

    def resolve_quote(self, attrs):
        service = find_best_service(attrs['platform'], attrs['service'], attrs['quantity'])
        if service is None:
            raise serializers.ValidationError(
                f"No '{attrs['service']}' service found for platform '{attrs['platform']}' "
                f"with quantity {attrs['quantity']}."
            )
        pricing = self.context.get('pricing') or PricingConfig.from_settings()
        return service, pricing.quote(service, attrs['quantity'], attrs.get('currency', 'NGN'))


class PricingQuerySerializer(QuoteMixin, serializers.Serializer):
    platform = serializers.CharField()
    service = serializers.ChoiceField(choices=list(SERVICE_TYPE_TERMS))
    quantity = serializers.IntegerField(min_value=1)
    currency = serializers.ChoiceField(choices=['NGN', 'USDT'], default='NGN')

    def validate(self, attrs):
        service, quote = self.resolve_quote(attrs)
        attrs['catalog_service'] = service
        attrs['quote'] = quote
        return attrs

    def to_quote(self):
        data = self.validated_data
        service = data['catalog_service']
        return {
            'platform': data['platform'],
            'service': data['service'],
            'quantity': data['quantity'],
            'service_id': str(service.id),
            'service_name': service.name,
            'min_order': service.min_order,
            'max_order': service.max_order,
            'price': str(data['quote']['price']),
            'currency': data['quote']['currency'],
            'price_usdt': str(data['quote']['price_usdt']),
            'exchange_rate': str(data['quote']['exchange_rate']),
        }


class OrderCreateSerializer(QuoteMixin, serializers.Serializer):
    """Validate a checkout request and create the order with its pending payment."""

    platform = serializers.CharField()
    service = serializers.ChoiceField(choices=list(SERVICE_TYPE_TERMS))
    quantity = serializers.IntegerField(min_value=1)
    social_url = serializers.URLField(max_length=500)
    payment_method = serializers.ChoiceField(choices=Payment.Method.choices)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    currency = serializers.ChoiceField(choices=['NGN', 'USDT'], default='NGN')

    def validate(self, attrs):
        if attrs['payment_method'] == Payment.Method.NGN and attrs['currency'] != 'NGN':
            raise serializers.ValidationError({'currency': "Bank transfer payments must be priced in NGN."})

        service, quote = self.resolve_quote(attrs)

        expected = quote['price']
        if expected <= 0 or abs(expected - attrs['amount']) / expected > PRICE_TOLERANCE:
            raise serializers.ValidationError({
                'amount': f"Price mismatch. Expected: {expected} {quote['currency']}, "
                          f"but got: {attrs['amount']} {attrs['currency']}."
            })

        attrs['catalog_service'] = service
        attrs['quote'] = quote
        return attrs

    def create(self, validated_data):
        service = validated_data['catalog_service']
        quote = validated_data['quote']
        request = self.context.get('request')
        customer = request.user if request and request.user.is_authenticated else None

        with transaction.atomic():
            order = Order.objects.create(
                customer=customer,
                platform=get_or_create_platform(validated_data['platform'].title()),
                service=service,
                quantity=validated_data['quantity'],
                link=validated_data['social_url'],
                price=quote['price'],
                currency=quote['currency'],
            )
            Payment.objects.create(
                order=order,
                amount=quote['price'],
                currency=quote['currency'],
                method=validated_data['payment_method'],
                gateway_ref=build_gateway_ref(order),
                exchange_rate=quote['exchange_rate'],
            )
        return order


class PaymentSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = ['id', 'status', 'amount', 'currency', 'method', 'gateway_ref']
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Serializer for listing orders."""

    platform = serializers.CharField(source='platform.name', read_only=True)
    service = serializers.CharField(source='service.name', read_only=True)
    payment_status = serializers.CharField(source='payment.status', read_only=True, default=None)

    class Meta:
        model = Order
        fields = [
            'id', 'platform', 'service', 'quantity', 'price', 'currency',
            'status', 'payment_status', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderDetailSerializer(serializers.ModelSerializer):
    """Serializer for order details."""

    platform = serializers.CharField(source='platform.name', read_only=True)
    service = serializers.CharField(source='service.name', read_only=True)
    social_url = serializers.CharField(source='link', read_only=True)
    customer_email = serializers.CharField(source='customer.email', read_only=True, default=None)
    payment = PaymentSummarySerializer(read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'customer_email', 'platform', 'service', 'quantity', 'social_url',
            'price', 'currency', 'status', 'provider_order_id', 'provider_status',
            'cancel_reason', 'payment', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class OrderStatusSerializer(serializers.ModelSerializer):
    """Progress view of an order; percentages come from the provider's remains count."""

    progress = serializers.SerializerMethodField()
    estimated_seconds_remaining = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            'id', 'status', 'progress', 'remains', 'start_count',
            'provider_status', 'last_synced_at', 'estimated_seconds_remaining'
        ]
        read_only_fields = fields

    def _pct(self, obj):
        from .reconciliation import compute_progress

        if obj.status == Order.Status.COMPLETED:
            return 100
        if obj.status != Order.Status.PROCESSING:
            return 0
        _, pct = compute_progress(obj.provider_quantity or obj.quantity, obj.remains)
        return pct

    def get_progress(self, obj):
        return self._pct(obj)

    def get_estimated_seconds_remaining(self, obj):
        from django.utils import timezone
        from .reconciliation import estimate_remaining

        if obj.status != Order.Status.PROCESSING or obj.dispatched_at is None:
            return None
        elapsed = (timezone.now() - obj.dispatched_at).total_seconds()
        return estimate_remaining(elapsed, self._pct(obj))


class FulfillOrderSerializer(serializers.Serializer):
    provider_service_id = serializers.CharField(max_length=50)
    quantity = serializers.IntegerField(min_value=1, required=False)


class CancelOrderSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, allow_blank=True, required=False, default='')
