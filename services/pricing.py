"""Price quoting for catalog services."""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from .models import PricingSettings

CENTS = Decimal('0.01')
RATE_PLACES = Decimal('0.0001')


@dataclass(frozen=True)
class PricingConfig:
    """
    Markup and exchange rate used for one quoting pass.

    Built from the latest operator-set rates, or settings when none were
    set; a rate change reaches the next request or task that calls
    ``from_settings``.
    """

    markup_percentage: Decimal
    usdt_exchange_rate: Decimal

    @classmethod
    def from_settings(cls):
        current = PricingSettings.objects.order_by('-created_at').first()
        if current is not None:
            return cls(
                markup_percentage=Decimal(current.markup_percentage),
                usdt_exchange_rate=Decimal(current.usdt_exchange_rate),
            )
        return cls(
            markup_percentage=Decimal(str(settings.SMM_MARKUP_PERCENTAGE)),
            usdt_exchange_rate=Decimal(str(settings.USDT_EXCHANGE_RATE)),
        )

    def boost_rate(self, provider_rate):
        """Apply the markup to a provider rate (per 1000 units)."""
        rate = Decimal(str(provider_rate)) * (1 + self.markup_percentage / 100)
        return rate.quantize(RATE_PLACES, rounding=ROUND_HALF_UP)

    def quote(self, service, quantity, currency='NGN'):
        """
        Price `quantity` units of `service` in `currency`.

        Returns:
            dict: price (Decimal, 2dp), currency, price_usdt and exchange_rate
        """
        price_usdt = Decimal(service.boost_rate) / 1000 * quantity
        currency = currency.upper()

        if currency == 'NGN':
            price = price_usdt * self.usdt_exchange_rate
            exchange_rate = self.usdt_exchange_rate
        else:
            price = price_usdt
            exchange_rate = Decimal('1')

        return {
            'price': price.quantize(CENTS, rounding=ROUND_HALF_UP),
            'currency': currency,
            'price_usdt': price_usdt.quantize(CENTS, rounding=ROUND_HALF_UP),
            'exchange_rate': exchange_rate,
        }

    def to_usdt(self, amount_ngn):
        return (Decimal(amount_ngn) / self.usdt_exchange_rate).quantize(Decimal('0.000001'), rounding=ROUND_HALF_UP)

    def as_dict(self):
        return {
            'markup_percentage': str(self.markup_percentage),
            'usdt_exchange_rate': str(self.usdt_exchange_rate),
        }


def set_rates(markup_percentage=None, usdt_exchange_rate=None, user=None):
    """
    Store new rates; a value left out keeps its current setting.

    Returns:
        tuple: (previous PricingConfig, new PricingConfig)
    """
    previous = PricingConfig.from_settings()
    current = PricingConfig(
        markup_percentage=previous.markup_percentage if markup_percentage is None else Decimal(str(markup_percentage)),
        usdt_exchange_rate=previous.usdt_exchange_rate if usdt_exchange_rate is None else Decimal(str(usdt_exchange_rate)),
    )
    PricingSettings.objects.create(
        markup_percentage=current.markup_percentage,
        usdt_exchange_rate=current.usdt_exchange_rate,
        updated_by=user,
    )
    return previous, current
