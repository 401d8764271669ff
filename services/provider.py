"""Client for upstream SMM panels speaking the common ``/api/v2`` protocol."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """The provider could not be reached or rejected the request."""


@dataclass(frozen=True)
class ProviderOrderStatus:
    external_order_id: str
    status: str
    remains: int | None = None
    start_count: int | None = None
    charge: Decimal | None = None
    currency: str = ''
    error: str = ''

    @property
    def ok(self):
        return not self.error


def _to_int(value):
    try:
        return int(Decimal(str(value)))
    except (InvalidOperation, TypeError, ValueError):
        return None


def _to_decimal(value):
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None


def _parse_status(external_order_id, data):
    if not isinstance(data, dict):
        return ProviderOrderStatus(external_order_id, status='', error='Malformed status entry')
    if data.get('error'):
        return ProviderOrderStatus(external_order_id, status='', error=str(data['error']))
    return ProviderOrderStatus(
        external_order_id=str(external_order_id),
        status=str(data.get('status') or ''),
        remains=_to_int(data.get('remains')),
        start_count=_to_int(data.get('start_count')),
        charge=_to_decimal(data.get('charge')),
        currency=str(data.get('currency') or ''),
    )


class SMMProviderClient:
    """Thin wrapper over the panel API; every call is a form-encoded POST."""

    def __init__(self, api_url, api_key, timeout=None):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout or settings.SMM_PROVIDER_TIMEOUT

    @classmethod
    def for_provider(cls, provider):
        return cls(
            api_url=provider.api_url or settings.SMM_PROVIDER_API_URL,
            api_key=provider.api_key or settings.SMM_PROVIDER_API_KEY,
        )

    def _post(self, action, **params):
        payload = {'key': self.api_key, 'action': action, **params}
        logger.debug(f"SMM provider request: action={action} url={self.api_url}")

        try:
            resp = requests.post(self.api_url, data=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"SMM provider request failed (action={action}): {str(e)}")
            raise ProviderError(f"Provider request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(f"Non-JSON provider response (HTTP {resp.status_code})") from e

        if isinstance(data, dict) and data.get('error') and action != 'status':
            raise ProviderError(str(data['error']))
        return data

    def services(self):
        data = self._post('services')
        if not isinstance(data, list):
            raise ProviderError("Unexpected services payload")
        return data

    def add_order(self, service, link, quantity):
        """
        Submit an order to the panel.

        Returns:
            dict: external_order_id plus any charge/start_count echoed back
        """
        data = self._post('add', service=service, link=link, quantity=quantity)
        if not isinstance(data, dict) or data.get('order') in (None, ''):
            raise ProviderError(f"Provider did not return an order id: {data!r}")

        logger.info(f"SMM provider accepted order {data['order']} (service={service}, quantity={quantity})")
        return {
            'external_order_id': str(data['order']),
            'charge': _to_decimal(data.get('charge')),
            'start_count': _to_int(data.get('start_count')),
        }

    def order_status(self, external_order_id):
        data = self._post('status', order=external_order_id)
        result = _parse_status(external_order_id, data)
        if not result.ok:
            raise ProviderError(result.error)
        return result

    def multi_status(self, external_order_ids):
        """
        Batched status lookup.

        Returns:
            dict: external order id -> ProviderOrderStatus; ids the provider
            rejected carry ``error`` instead of a status.
        """
        ids = [str(i) for i in external_order_ids]
        if not ids:
            return {}

        data = self._post('status', orders=','.join(ids))
        if not isinstance(data, dict):
            raise ProviderError("Unexpected multi-status payload")
        if set(data.keys()) == {'error'}:
            raise ProviderError(str(data['error']))

        results = {}
        for external_id in ids:
            if external_id in data:
                results[external_id] = _parse_status(external_id, data[external_id])
            else:
                results[external_id] = ProviderOrderStatus(external_id, status='', error='Missing from provider response')
        return results
