from django.urls import path
from .views import (
    InitiatePaymentView,
    ListReviewWebhookLogsView,
    PaymentStatusView,
    ResolveWebhookLogView,
    VerifyPaymentView,
    payment_webhook_view,
)

app_name = 'payments'

urlpatterns = [
    path('initiate/', InitiatePaymentView.as_view(), name='payment-initiate'),
    path('verify/', VerifyPaymentView.as_view(), name='payment-verify'),
    path('status/<uuid:order_id>/', PaymentStatusView.as_view(), name='payment-status'),

    # Gateway webhooks
    path('webhook/<str:provider>/', payment_webhook_view, name='payment-webhook'),

    # Operator review queue
    path('webhook-logs/review/', ListReviewWebhookLogsView.as_view(), name='webhook-log-review'),
    path('webhook-logs/<uuid:id>/resolve/', ResolveWebhookLogView.as_view(), name='webhook-log-resolve'),
]
