import logging
from decimal import Decimal

from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from users.permissions import IsAdmin
from .models import Provider, Service
from .pricing import PricingConfig, set_rates
from .provider import ProviderError
from .serializers import ServiceSerializer, UpdateRatesSerializer
from .utils import recalculate_boost_rates, sync_provider_services

logger = logging.getLogger(__name__)


class CatalogContextMixin:
    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['currency'] = (self.request.query_params.get('currency') or 'USDT').upper()
        context['pricing'] = PricingConfig.from_settings()
        return context


class ListServiceView(CatalogContextMixin, generics.ListAPIView):
    """
    List the active catalog.

    GET /api/services/?platform=instagram&currency=NGN - Public
    """

    serializer_class = ServiceSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        queryset = Service.objects.filter(active=True).select_related('platform', 'provider')
        platform = self.request.query_params.get('platform')
        if platform:
            queryset = queryset.filter(platform__slug__iexact=platform)
        return queryset.order_by('platform__name', 'category', 'boost_rate')

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(
            {
                'success': True,
                'message': 'Services retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class RetrieveServiceView(CatalogContextMixin, generics.RetrieveAPIView):
    """
    GET /api/services/{id}/ - Public
    """

    serializer_class = ServiceSerializer
    permission_classes = [permissions.AllowAny]
    lookup_field = 'id'
    queryset = Service.objects.select_related('platform', 'provider')

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return Response(
            {
                'success': True,
                'message': 'Service retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class SyncProviderServicesView(APIView):
    """
    Pull a provider's catalog on demand.

    POST /api/services/providers/{slug}/sync/ - Admins only
    """

    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request, slug):
        try:
            provider = Provider.objects.get(slug=slug, active=True)
        except Provider.DoesNotExist:
            return Response(
                {'success': False, 'message': f'Provider {slug} not found'},
                status=status.HTTP_404_NOT_FOUND
            )

        try:
            result = sync_provider_services(provider)
        except ProviderError as e:
            logger.error(f"Manual catalog sync failed for {slug}: {str(e)}")
            return Response(
                {'success': False, 'message': str(e)},
                status=status.HTTP_502_BAD_GATEWAY
            )

        return Response(
            {'success': True, 'message': 'Catalog synced', 'data': result},
            status=status.HTTP_200_OK
        )


def _rates_data(pricing):
    example_boost_rate = pricing.boost_rate(Decimal('1'))
    return {
        **pricing.as_dict(),
        'example': {
            'provider_rate': '1.0000',
            'boost_rate': str(example_boost_rate),
            'markup_amount': str(example_boost_rate - 1),
        },
    }


class RatesView(APIView):
    """
    Markup and exchange rate used for pricing.

    GET /api/services/rates/ - Admins only
    POST /api/services/rates/ - Admins only

    Saving new rates does not touch stored boost rates; run
    recalculate-prices afterwards to reprice the catalog.
    """

    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get(self, request):
        return Response(
            {'success': True, 'message': 'Rates retrieved successfully', 'data': _rates_data(PricingConfig.from_settings())},
            status=status.HTTP_200_OK
        )

    def post(self, request):
        serializer = UpdateRatesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        previous, current = set_rates(user=request.user, **serializer.validated_data)
        logger.info(
            f"Rates changed by {request.user.email}: markup {previous.markup_percentage} -> {current.markup_percentage}, "
            f"exchange {previous.usdt_exchange_rate} -> {current.usdt_exchange_rate}"
        )
        return Response(
            {
                'success': True,
                'message': 'Rates updated successfully',
                'data': {
                    'previous_rates': previous.as_dict(),
                    'new_rates': current.as_dict(),
                    'affected_services': Service.objects.filter(active=True).count(),
                }
            },
            status=status.HTTP_200_OK
        )


class RecalculatePricesView(APIView):
    """
    Reprice every catalog service with the current markup.

    POST /api/services/recalculate-prices/ - Admins only
    """

    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request):
        pricing = PricingConfig.from_settings()
        updated = recalculate_boost_rates(pricing)
        return Response(
            {
                'success': True,
                'message': 'Service prices recalculated successfully',
                'data': {'services_updated': updated, **pricing.as_dict()}
            },
            status=status.HTTP_200_OK
        )
