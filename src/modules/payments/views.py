"""Checkout, webhook and reconciliation endpoints.

- ``PixCheckoutView`` / ``CardCheckoutView``: public checkout (throttled).
- ``PaymentWebhookIngressView``: single ingress for every provider path
  variant under ``/api/webhooks/payment/``.
- ``PayoutWebhookView``: payout (send) notifications.
- ``OrderReconcileView``: staff-only "ask the gateway again".

Webhook views always answer 200 for a body they could audit; only an
unrecognized path is a 404.
"""

from __future__ import annotations

import re
from typing import Optional

import pydantic
import structlog
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.catalog.exceptions import BookNotFound, OutOfStock
from modules.core.exceptions import (
    CLIENT_ERROR,
    GATEWAY_ERROR,
    STOCK_CONFLICT,
    VALIDATION_ERROR,
    error_response,
)
from modules.orders.constants import PaymentMethod, StatusSource
from modules.orders.models import Order
from modules.payments.checkout import CardCheckoutService, PixCheckoutService
from modules.payments.confirmation import PaymentConfirmationService
from modules.payments.exceptions import CheckoutValidationError, GatewayError
from modules.payments.gateways import get_card_gateway, get_pix_gateway
from modules.payments.serializers import (
    CardCheckoutSerializer,
    CheckoutResponseSerializer,
    CheckoutSerializer,
)
from modules.payments.webhooks import PaymentWebhookProcessor

logger = structlog.get_logger(__name__)


def checkout_error_response(exc: Exception) -> Optional[Response]:
    """Map a checkout failure to the standard envelope, ``None`` if unknown."""
    if isinstance(exc, OutOfStock):
        return error_response(
            STOCK_CONFLICT,
            "out_of_stock",
            str(exc),
            status.HTTP_409_CONFLICT,
            attr="items",
            book_id=exc.book_id,
            available=exc.available,
        )
    if isinstance(exc, BookNotFound):
        return error_response(
            VALIDATION_ERROR,
            "book_not_found",
            str(exc),
            status.HTTP_400_BAD_REQUEST,
            attr="items",
        )
    if isinstance(exc, CheckoutValidationError):
        return error_response(
            VALIDATION_ERROR, exc.code, exc.detail, status.HTTP_400_BAD_REQUEST, attr=exc.attr
        )
    if isinstance(exc, GatewayError):
        return error_response(
            GATEWAY_ERROR,
            "gateway_error",
            "Payment provider unavailable, please try again.",
            status.HTTP_502_BAD_GATEWAY,
        )
    if isinstance(exc, pydantic.ValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        attr = ".".join(str(part) for part in first.get("loc", ())) or None
        return error_response(
            VALIDATION_ERROR,
            "invalid",
            first.get("msg", str(exc)),
            status.HTTP_400_BAD_REQUEST,
            attr=attr,
        )
    return None


class _CheckoutView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "checkout"

    def _run(self, build_dto, service) -> Response:
        try:
            result = service.checkout(build_dto())
        except (
            OutOfStock,
            BookNotFound,
            CheckoutValidationError,
            GatewayError,
            pydantic.ValidationError,
        ) as exc:
            return checkout_error_response(exc)
        return Response(
            CheckoutResponseSerializer(result.to_dict()).data,
            status=status.HTTP_201_CREATED,
        )


class PixCheckoutView(_CheckoutView):
    """POST /api/checkout/pix"""

    def post(self, request: Request) -> Response:
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(serializer.to_pix_dto, PixCheckoutService())


class CardCheckoutView(_CheckoutView):
    """POST /api/checkout/card"""

    def post(self, request: Request) -> Response:
        serializer = CardCheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._run(serializer.to_card_dto, CardCheckoutService())


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------

WEBHOOK_ROUTES = {
    ("pix",): "pix",
    ("pix", "pix"): "pix",
    ("efi", "pix"): "pix",
    ("card",): "card",
    ("efi", "card"): "card",
    ("payout",): "payout",
    ("payout", "pix"): "payout",
}


def canonical_webhook_route(subpath: str) -> Optional[str]:
    """Canonical handler name for a (possibly malformed) webhook path.

    ``pix``, ``pix/``, ``pix//``, ``pix/pix`` and ``efi/pix`` all map to
    ``pix``; unknown paths map to ``None``.
    """
    segments = tuple(s for s in re.split(r"/+", (subpath or "").lower()) if s)
    return WEBHOOK_ROUTES.get(segments)


class _WebhookView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_classes: list = []


class PaymentWebhookIngressView(_WebhookView):
    """POST /api/webhooks/payment/<subpath>"""

    def post(self, request: Request, subpath: str = "") -> Response:
        route = canonical_webhook_route(subpath)
        if route is None:
            logger.info("webhook.unknown_route", path=request.path)
            return error_response(
                CLIENT_ERROR, "not_found", "Unknown webhook route.", status.HTTP_404_NOT_FOUND
            )

        processor = PaymentWebhookProcessor()
        body = request.body
        if route == "card":
            ack = processor.handle_card(body, request.path)
        elif route == "payout":
            ack = processor.handle_payout(body, request.path)
        else:
            ack = processor.handle_pix(body, request.path)
        return Response(ack.to_dict(), status=status.HTTP_200_OK)


class PayoutWebhookView(_WebhookView):
    """POST /api/webhooks/payout"""

    def post(self, request: Request) -> Response:
        ack = PaymentWebhookProcessor().handle_payout(request.body, request.path)
        return Response(ack.to_dict(), status=status.HTTP_200_OK)


# ---------------------------------------------------------------------------
# Admin reconciliation
# ---------------------------------------------------------------------------


class OrderReconcileView(APIView):
    """POST /api/v1/payments/orders/{order_id}/reconcile"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, order_id: int) -> Response:
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return error_response(
                CLIENT_ERROR,
                "not_found",
                f"Order {order_id} not found.",
                status.HTTP_404_NOT_FOUND,
            )
        reference = order.reference
        if not reference:
            return error_response(
                CLIENT_ERROR,
                "no_reference",
                f"Order {order_id} has no gateway reference.",
                status.HTTP_409_CONFLICT,
            )

        gateway = (
            get_card_gateway()
            if order.payment_method == PaymentMethod.CARD
            else get_pix_gateway()
        )
        try:
            provider_status = gateway.get_status(reference)
        except GatewayError as exc:
            logger.warning(
                "payment.reconcile_failed", order_id=order_id, error=str(exc)
            )
            return checkout_error_response(exc)

        result = PaymentConfirmationService().handle_status(
            reference, provider_status, order.payment_method, StatusSource.ADMIN
        )
        order.refresh_from_db()
        logger.info(
            "payment.reconciled",
            order_id=order_id,
            provider_status=provider_status,
            user=request.user.get_username(),
        )
        return Response(
            {
                "order_id": order.pk,
                "provider_status": provider_status,
                "paid": order.paid,
                "status": order.status,
                "outcome": result.outcome.value if result.outcome else None,
                "applied_status": result.applied_status,
            }
        )
