"""Order DRF serializers (read side).

Checkout input is validated in ``modules.payments.serializers``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.models import Order, OrderItem, OrderStatusHistory


class OrderItemSerializer(serializers.ModelSerializer):
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = OrderItem
        fields = ["id", "book_id", "title", "quantity", "price", "subtotal"]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["id", "old_status", "new_status", "source", "notes", "created_at"]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Operator view of an order with items and history."""

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "first_name",
            "last_name",
            "email",
            "payment_method",
            "status",
            "paid",
            "paid_at",
            "shipping",
            "discount_amount",
            "coupon_code",
            "total",
            "txid",
            "charge_id",
            "installments",
            "reserve_expires_at",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "email",
            "payment_method",
            "status",
            "paid",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class OrderPaymentStatusSerializer(serializers.ModelSerializer):
    """What the storefront polls while the customer pays."""

    class Meta:
        model = Order
        fields = ["id", "status", "paid", "paid_at", "reserve_expires_at"]
        read_only_fields = fields
