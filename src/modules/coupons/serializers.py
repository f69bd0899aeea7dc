from __future__ import annotations

from rest_framework import serializers


class CouponValidationRequestSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    order_total = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0
    )
    email = serializers.EmailField(required=False, allow_blank=True)
