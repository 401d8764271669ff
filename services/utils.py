"""Catalog maintenance: provider sync, categorisation and service lookup."""

import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.text import slugify

from .models import Platform, Service
from .pricing import PricingConfig
from .provider import SMMProviderClient

logger = logging.getLogger(__name__)

KNOWN_PLATFORMS = [
    'Instagram', 'Facebook', 'Twitter', 'YouTube', 'TikTok', 'Telegram',
    'LinkedIn', 'Pinterest', 'Snapchat', 'Twitch', 'Discord', 'Reddit',
    'Website', 'SoundCloud',
]

# Order service type -> fragment expected in provider service names
SERVICE_TYPE_TERMS = {
    'followers': 'Follower',
    'likes': 'Like',
    'views': 'View',
    'comments': 'Comment',
    'shares': 'Share',
    'subscribers': 'Subscrib',
}


def extract_platform_name(service_name):
    lowered = service_name.lower()
    for name in KNOWN_PLATFORMS:
        if name.lower() in lowered:
            return name
    return 'Other'


def get_or_create_platform(name):
    platform, _ = Platform.objects.get_or_create(slug=slugify(name), defaults={'name': name})
    return platform


def sync_provider_services(provider, client=None, pricing=None):
    """
    Pull the provider catalog and upsert it locally.

    Args:
        provider: Provider instance
        client: optional SMMProviderClient (defaults to one built for the provider)
        pricing: optional PricingConfig used to derive boost rates

    Returns:
        dict: added, updated and has_changes
    """
    client = client or SMMProviderClient.for_provider(provider)
    pricing = pricing or PricingConfig.from_settings()
    entries = client.services()

    added = 0
    updated = 0
    now = timezone.now()

    for entry in entries:
        try:
            provider_rate = Decimal(str(entry['rate']))
            fields = {
                'name': entry['name'],
                'type': entry.get('type') or '',
                'category': entry.get('category') or '',
                'provider_rate': provider_rate,
                'boost_rate': pricing.boost_rate(provider_rate),
                'min_order': int(entry['min']),
                'max_order': int(entry['max']),
                'dripfeed': bool(entry.get('dripfeed')),
                'refill': bool(entry.get('refill')),
                'cancel': bool(entry.get('cancel')),
                'platform': get_or_create_platform(extract_platform_name(entry['name'])),
            }
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(f"Skipping malformed provider service {entry!r}: {str(e)}")
            continue

        with transaction.atomic():
            service = Service.objects.select_for_update().filter(
                provider=provider, provider_service_id=str(entry['service'])
            ).first()

            if service is None:
                Service.objects.create(
                    provider=provider,
                    provider_service_id=str(entry['service']),
                    last_checked=now,
                    **fields,
                )
                added += 1
                continue

            changed = [name for name, value in fields.items() if getattr(service, name) != value]
            service.last_checked = now
            if changed:
                for name in changed:
                    setattr(service, name, fields[name])
                updated += 1
            service.save(update_fields=changed + ['last_checked', 'updated_at'])

    logger.info(f"Provider {provider.slug} catalog synced: {added} added, {updated} updated")
    return {'added': added, 'updated': updated, 'has_changes': bool(added or updated)}


def recalculate_boost_rates(pricing=None):
    """
    Re-derive every service's boost rate from its provider rate.

    Returns:
        int: number of services whose boost rate changed
    """
    pricing = pricing or PricingConfig.from_settings()
    updated = 0

    with transaction.atomic():
        for service in Service.objects.select_for_update().only('id', 'provider_rate', 'boost_rate'):
            boost_rate = pricing.boost_rate(service.provider_rate)
            if service.boost_rate != boost_rate:
                service.boost_rate = boost_rate
                service.save(update_fields=['boost_rate', 'updated_at'])
                updated += 1

    logger.info(f"Boost rates recalculated at {pricing.markup_percentage}% markup: {updated} services updated")
    return updated


def find_best_service(platform_slug, service_type, quantity):
    """
    Cheapest active service for a platform/service type whose limits fit.

    Services mentioning Nigeria are preferred over the general catalog.
    Returns None when nothing fits.
    """
    term = SERVICE_TYPE_TERMS.get(service_type.lower(), service_type)
    base = Service.objects.filter(
        Q(platform__slug__iexact=platform_slug) | Q(name__icontains=platform_slug),
        name__icontains=term,
        active=True,
        min_order__lte=quantity,
        max_order__gte=quantity,
    ).select_related('platform', 'provider').order_by('boost_rate', 'created_at')

    return base.filter(name__icontains='Nigeria').first() or base.first()
