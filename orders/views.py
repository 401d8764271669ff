import logging
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from django.shortcuts import get_object_or_404
from services.provider import ProviderError
from users.permissions import IsAdmin, IsCustomer, IsOrderOwnerOrAdmin
from .exceptions import DispatchError, IllegalTransition
from .fulfillment import dispatch_order
from .models import Order
from .reconciliation import sync_order_status
from .serializers import (
    CancelOrderSerializer,
    FulfillOrderSerializer,
    OrderCreateSerializer,
    OrderDetailSerializer,
    OrderListSerializer,
    OrderStatusSerializer,
    PricingQuerySerializer,
)
from .state_machine import cancel_order

logger = logging.getLogger(__name__)


def _error(message, http_status):
    return Response({'success': False, 'message': message}, status=http_status)


class CreateOrderView(generics.CreateAPIView):
    """
    Create a new order.

    POST /api/orders/ - Customers only

    This endpoint:
    1. Picks the cheapest catalog service that fits the platform, type and quantity
    2. Checks the client's amount against our quote
    3. Creates a pending order and its pending payment in one transaction
    """

    serializer_class = OrderCreateSerializer
    permission_classes = [permissions.IsAuthenticated, IsCustomer]

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        order = serializer.save()
        logger.info(f"Order {order.id} created for customer {request.user.id} ({order.price} {order.currency})")

        response_serializer = OrderDetailSerializer(order, context={'request': request})
        return Response(
            {
                'success': True,
                'message': 'Order created successfully. Proceed to payment.',
                'data': response_serializer.data
            },
            status=status.HTTP_201_CREATED
        )


class OrderPricingView(generics.GenericAPIView):
    """
    Quote a price without creating anything.

    GET /api/orders/pricing/?platform=instagram&service=followers&quantity=1000&currency=NGN - Public
    """

    serializer_class = PricingQuerySerializer
    permission_classes = [permissions.AllowAny]

    def get(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(
            {
                'success': True,
                'message': 'Pricing calculated successfully',
                'data': serializer.to_quote()
            },
            status=status.HTTP_200_OK
        )


class ListCustomerOrdersView(generics.ListAPIView):
    """
    List all orders for the authenticated customer.

    GET /api/orders/my/ - Customers only
    """

    serializer_class = OrderListSerializer
    permission_classes = [permissions.IsAuthenticated, IsCustomer]

    def get_queryset(self):
        return Order.objects.filter(customer=self.request.user).select_related('platform', 'service', 'payment')

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(
            {
                'success': True,
                'message': 'Orders retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class ListPendingOrdersView(generics.ListAPIView):
    """
    Orders awaiting approval: pending, payment completed.

    GET /api/orders/pending/ - Admins only
    """

    serializer_class = OrderListSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def get_queryset(self):
        return (
            Order.objects.filter(status=Order.Status.PENDING, payment__status='completed')
            .select_related('platform', 'service', 'payment')
            .order_by('created_at')
        )

    def list(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_queryset(), many=True)
        return Response(
            {
                'success': True,
                'message': 'Pending orders retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class RetrieveOrderView(generics.RetrieveAPIView):
    """
    Retrieve details of a specific order.

    GET /api/orders/{id}/ - Owner or admin
    """

    serializer_class = OrderDetailSerializer
    permission_classes = [permissions.IsAuthenticated, IsOrderOwnerOrAdmin]
    lookup_field = 'id'
    queryset = Order.objects.select_related('platform', 'service', 'payment', 'customer')

    def retrieve(self, request, *args, **kwargs):
        serializer = self.get_serializer(self.get_object())
        return Response(
            {
                'success': True,
                'message': 'Order retrieved successfully',
                'data': serializer.data
            },
            status=status.HTTP_200_OK
        )


class OrderStatusView(RetrieveOrderView):
    """
    Delivery progress of an order.

    GET /api/orders/{id}/status/ - Owner or admin
    """

    serializer_class = OrderStatusSerializer


class FulfillOrderView(generics.GenericAPIView):
    """
    Approve a paid order and send it to the provider.

    POST /api/orders/{id}/fulfill/ - Admins only
    """

    serializer_class = FulfillOrderSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request, id):
        get_object_or_404(Order, id=id)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            provider_order_id = dispatch_order(
                id,
                serializer.validated_data['provider_service_id'],
                quantity=serializer.validated_data.get('quantity'),
            )
        except IllegalTransition as e:
            return _error(str(e), status.HTTP_409_CONFLICT)
        except DispatchError as e:
            return _error(str(e), status.HTTP_400_BAD_REQUEST)
        except ProviderError as e:
            logger.error(f"Provider rejected dispatch of order {id}: {str(e)}")
            return _error(str(e), status.HTTP_502_BAD_GATEWAY)

        order = Order.objects.select_related('platform', 'service', 'payment', 'customer').get(id=id)
        return Response(
            {
                'success': True,
                'message': f'Order sent to provider as {provider_order_id}',
                'data': OrderDetailSerializer(order, context={'request': request}).data
            },
            status=status.HTTP_200_OK
        )


class CancelOrderView(generics.GenericAPIView):
    """
    Decline or cancel an order.

    POST /api/orders/{id}/cancel/ - Admins only
    """

    serializer_class = CancelOrderSerializer
    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request, id):
        order = get_object_or_404(Order, id=id)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order = cancel_order(order, serializer.validated_data['reason'])
        except IllegalTransition as e:
            return _error(str(e), status.HTTP_409_CONFLICT)

        return Response(
            {
                'success': True,
                'message': 'Order cancelled',
                'data': OrderDetailSerializer(order, context={'request': request}).data
            },
            status=status.HTTP_200_OK
        )


class SyncOrderStatusView(generics.GenericAPIView):
    """
    Pull the provider status of one processing order now.

    POST /api/orders/{id}/sync-status/ - Admins only
    """

    permission_classes = [permissions.IsAuthenticated, IsAdmin]

    def post(self, request, id):
        get_object_or_404(Order, id=id)

        try:
            order = sync_order_status(id)
        except IllegalTransition as e:
            return _error(str(e), status.HTTP_409_CONFLICT)
        except ProviderError as e:
            logger.error(f"Status sync failed for order {id}: {str(e)}")
            return _error(str(e), status.HTTP_502_BAD_GATEWAY)

        return Response(
            {
                'success': True,
                'message': 'Order status synced',
                'data': OrderStatusSerializer(order, context={'request': request}).data
            },
            status=status.HTTP_200_OK
        )
