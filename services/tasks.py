"""Background catalog sync."""

import logging
from celery import shared_task

from .provider import ProviderError

logger = logging.getLogger(__name__)


@shared_task
def sync_all_provider_services():
    """Refresh every active provider catalog; one failing provider does not stop the rest."""
    from services.models import Provider
    from services.utils import sync_provider_services

    results = {}
    for provider in Provider.objects.filter(active=True):
        try:
            results[provider.slug] = sync_provider_services(provider)
        except ProviderError as e:
            logger.error(f"Catalog sync failed for provider {provider.slug}: {str(e)}")
            results[provider.slug] = {'error': str(e)}
    return results


@shared_task
def recalculate_service_prices():
    """Apply the current markup to the whole catalog."""
    from services.utils import recalculate_boost_rates

    return recalculate_boost_rates()
