"""Checkout DRF serializers.

Input serializers validate the wire format; the views turn the validated
data into the Pydantic DTOs the checkout services consume.
"""

from __future__ import annotations

from typing import Any, Dict

from rest_framework import serializers

from modules.payments.dtos import CardCheckoutDTO, CustomerDTO, PixCheckoutDTO

CUSTOMER_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "cpf",
    "phone",
    "cep",
    "street",
    "number",
    "complement",
    "district",
    "city",
    "state",
    "note",
)


class CheckoutItemSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=64)
    title = serializers.CharField(max_length=255, required=False, default="", allow_blank=True)
    quantity = serializers.IntegerField(min_value=1)
    price = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True
    )
    image_url = serializers.CharField(
        max_length=500, required=False, default="", allow_blank=True
    )


class CheckoutSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100)
    last_name = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    email = serializers.EmailField()
    cpf = serializers.CharField(max_length=14, required=False, default="", allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, default="", allow_blank=True)
    cep = serializers.CharField(max_length=9, required=False, default="", allow_blank=True)
    street = serializers.CharField(max_length=255, required=False, default="", allow_blank=True)
    number = serializers.CharField(max_length=20, required=False, default="", allow_blank=True)
    complement = serializers.CharField(
        max_length=255, required=False, default="", allow_blank=True
    )
    district = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, default="", allow_blank=True)
    state = serializers.CharField(max_length=2, required=False, default="", allow_blank=True)
    note = serializers.CharField(required=False, default="", allow_blank=True)

    items = CheckoutItemSerializer(many=True, allow_empty=False)
    shipping = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, default="0.00"
    )
    coupon_code = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True
    )
    # Client-asserted values; accepted for compatibility, never used for pricing.
    total = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True
    )
    discount = serializers.DecimalField(
        max_digits=10, decimal_places=2, required=False, allow_null=True
    )

    def dto_kwargs(self) -> Dict[str, Any]:
        data = dict(self.validated_data)
        customer = CustomerDTO(**{name: data.pop(name) for name in CUSTOMER_FIELDS})
        return {"customer": customer, **data}

    def to_pix_dto(self) -> PixCheckoutDTO:
        return PixCheckoutDTO(**self.dto_kwargs())


class CardCheckoutSerializer(CheckoutSerializer):
    payment_token = serializers.CharField(max_length=255)
    installments = serializers.IntegerField(min_value=1, max_value=12, required=False, default=1)

    def to_card_dto(self) -> CardCheckoutDTO:
        return CardCheckoutDTO(**self.dto_kwargs())


class CheckoutResponseSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    payment_method = serializers.CharField()
    status = serializers.CharField()
    total = serializers.DecimalField(max_digits=10, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    reserve_expires_at = serializers.DateTimeField(allow_null=True)
    ttl_seconds = serializers.IntegerField()
    warning_at_seconds = serializers.IntegerField()
    security_warning_at_seconds = serializers.IntegerField()
    txid = serializers.CharField(allow_null=True, required=False)
    qr_code = serializers.CharField(allow_blank=True, required=False)
    qr_code_base64 = serializers.CharField(allow_blank=True, required=False)
    charge_id = serializers.CharField(allow_null=True, required=False)
    message = serializers.CharField(allow_blank=True, required=False)
