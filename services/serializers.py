from decimal import Decimal

from rest_framework import serializers
from .models import Platform, Service


class PlatformSerializer(serializers.ModelSerializer):
    """Serializer for Platform model."""

    class Meta:
        model = Platform
        fields = ['id', 'name', 'slug', 'active']


class ServiceSerializer(serializers.ModelSerializer):
    """
    Catalog entry as shown to customers.

    `rate` is the boost rate per 1000 units converted into the currency
    passed in the serializer context (USDT when absent).
    """

    platform = PlatformSerializer(read_only=True)
    provider = serializers.CharField(source='provider.slug', read_only=True)
    rate = serializers.SerializerMethodField()
    currency = serializers.SerializerMethodField()

    class Meta:
        model = Service
        fields = [
            'id', 'provider', 'provider_service_id', 'platform', 'name', 'type', 'category',
            'rate', 'currency', 'min_order', 'max_order', 'refill', 'cancel', 'dripfeed',
        ]
        read_only_fields = fields

    def get_currency(self, obj):
        return self.context.get('currency', 'USDT')

    def get_rate(self, obj):
        pricing = self.context.get('pricing')
        if self.get_currency(obj) == 'NGN' and pricing is not None:
            return str((obj.boost_rate * pricing.usdt_exchange_rate).quantize(obj.boost_rate))
        return str(obj.boost_rate)


class UpdateRatesSerializer(serializers.Serializer):
    markup_percentage = serializers.DecimalField(
        max_digits=6, decimal_places=2, min_value=0, max_value=1000, required=False
    )
    usdt_exchange_rate = serializers.DecimalField(
        max_digits=12, decimal_places=4, min_value=Decimal('0.0001'), required=False
    )

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide markup_percentage and/or usdt_exchange_rate.")
        return attrs
