from django.urls import path
from .views import (
    CancelOrderView,
    CreateOrderView,
    FulfillOrderView,
    ListCustomerOrdersView,
    ListPendingOrdersView,
    OrderPricingView,
    OrderStatusView,
    RetrieveOrderView,
    SyncOrderStatusView,
)

app_name = 'orders'

urlpatterns = [
    path('', CreateOrderView.as_view(), name='create-order'),
    path('pricing/', OrderPricingView.as_view(), name='order-pricing'),

    # Customer views
    path('my/', ListCustomerOrdersView.as_view(), name='customer-orders'),

    # Admin approval queue and actions
    path('pending/', ListPendingOrdersView.as_view(), name='pending-orders'),
    path('<uuid:id>/fulfill/', FulfillOrderView.as_view(), name='order-fulfill'),
    path('<uuid:id>/cancel/', CancelOrderView.as_view(), name='order-cancel'),
    path('<uuid:id>/sync-status/', SyncOrderStatusView.as_view(), name='order-sync-status'),

    # Order details
    path('<uuid:id>/', RetrieveOrderView.as_view(), name='order-detail'),
    path('<uuid:id>/status/', OrderStatusView.as_view(), name='order-status'),
]
