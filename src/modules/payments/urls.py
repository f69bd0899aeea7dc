"""Payments URL configuration (mounted at the project root)."""

from django.urls import path

from modules.orders.views import OrderPaymentStatusView
from modules.payments.views import (
    CardCheckoutView,
    OrderReconcileView,
    PaymentWebhookIngressView,
    PayoutWebhookView,
    PixCheckoutView,
)

urlpatterns = [
    path("api/checkout/pix", PixCheckoutView.as_view(), name="checkout_pix"),
    path("api/checkout/card", CardCheckoutView.as_view(), name="checkout_card"),
    path(
        "api/checkout/orders/<int:order_id>/status",
        OrderPaymentStatusView.as_view(),
        name="checkout_order_status",
    ),
    path(
        "api/webhooks/payment/<path:subpath>",
        PaymentWebhookIngressView.as_view(),
        name="payment_webhook",
    ),
    path("api/webhooks/payout", PayoutWebhookView.as_view(), name="payout_webhook"),
    path(
        "api/v1/payments/orders/<int:order_id>/reconcile",
        OrderReconcileView.as_view(),
        name="payment_reconcile",
    ),
]
