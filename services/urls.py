from django.urls import path
from .views import (
    ListServiceView,
    RatesView,
    RecalculatePricesView,
    RetrieveServiceView,
    SyncProviderServicesView,
)

app_name = 'services'

urlpatterns = [
    path('rates/', RatesView.as_view(), name='rates'),
    path('recalculate-prices/', RecalculatePricesView.as_view(), name='recalculate-prices'),
    path('providers/<slug:slug>/sync/', SyncProviderServicesView.as_view(), name='provider-sync'),
    path('<uuid:id>/', RetrieveServiceView.as_view(), name='service-detail'),
    path('', ListServiceView.as_view(), name='service-list'),
]
