"""Public coupon preview (no side effects)."""

from __future__ import annotations

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from modules.core.exceptions import VALIDATION_ERROR, error_response
from modules.coupons.exceptions import InvalidCoupon
from modules.coupons.serializers import CouponValidationRequestSerializer
from modules.coupons.services import CouponService


class CouponValidateView(APIView):
    authentication_classes: list = []
    permission_classes = [AllowAny]

    def post(self, request: Request) -> Response:
        serializer = CouponValidationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = CouponService().validate(
                data["code"], data["order_total"], data.get("email") or None
            )
        except InvalidCoupon as exc:
            return error_response(
                VALIDATION_ERROR,
                "invalid_coupon",
                exc.reason,
                status.HTTP_400_BAD_REQUEST,
                attr="code",
            )

        coupon = result.coupon
        return Response(
            {
                "valid": True,
                "code": coupon.code,
                "name": coupon.name,
                "discount_type": coupon.discount_type,
                "discount_amount": str(result.discount_amount),
                "final_total": str(result.final_total),
            }
        )
