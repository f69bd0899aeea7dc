"""Order API views.

- ``OrderViewSet``: operator read API (JWT), filtered and paginated.
- ``OrderPaymentStatusView``: public endpoint the storefront polls while
  the customer pays.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import CLIENT_ERROR, error_response
from modules.core.pagination import StandardResultsSetPagination
from modules.orders.exceptions import OrderNotFound
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    OrderListSerializer,
    OrderPaymentStatusSerializer,
    OrderSerializer,
)
from modules.orders.services import build_order_service


def _not_found(order_id) -> Response:
    return error_response(
        CLIENT_ERROR,
        "not_found",
        f"Order {order_id} not found.",
        status.HTTP_404_NOT_FOUND,
    )


class OrderViewSet(GenericViewSet):
    """Read-only operator access to orders.

    Does **not** extend ``ModelViewSet``: status changes only happen
    through the checkout, reconciliation and sweep flows.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    search_fields = ["id", "email", "txid", "charge_id"]
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        self.throttle_scope = "order_listing"
        return super().get_throttles()

    def get_queryset(self):
        return OrderDjangoRepository().list()

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/"""
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound:
            return _not_found(pk)
        return Response(OrderSerializer(order).data)


class OrderPaymentStatusView(APIView):
    """GET /api/checkout/orders/{order_id}/status"""

    authentication_classes: list = []
    permission_classes = [AllowAny]

    def get(self, request: Request, order_id: int) -> Response:
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return _not_found(order_id)
        return Response(OrderPaymentStatusSerializer(order).data)
