"""Checkout DTOs for the Service Layer.

Framework-agnostic input contracts using Pydantic v2, built from the
validated DRF serializer data.  DTOs are immutable (``frozen=True``).

Client-asserted prices, totals and discounts are accepted for display
compatibility but never reach the pricing logic.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class CheckoutItemDTO(BaseModel):
    """One cart line: ``price`` is what the client showed, not what we charge."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    quantity: int
    price: Optional[Decimal] = None
    image_url: str = ""

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CustomerDTO(BaseModel):
    """Customer and shipping fields, opaque to the reservation core."""

    model_config = ConfigDict(frozen=True)

    first_name: str
    last_name: str = ""
    email: str
    cpf: str = ""
    phone: str = ""
    cep: str = ""
    street: str = ""
    number: str = ""
    complement: str = ""
    district: str = ""
    city: str = ""
    state: str = ""
    note: str = ""

    @field_validator("cpf", "phone", "cep")
    @classmethod
    def digits_only(cls, v: str) -> str:
        return re.sub(r"\D", "", v or "")

    def order_fields(self) -> Dict[str, str]:
        return self.model_dump()


class CheckoutDTO(BaseModel):
    """Common checkout request for every payment method."""

    model_config = ConfigDict(frozen=True)

    customer: CustomerDTO
    items: List[CheckoutItemDTO]
    shipping: Decimal = Decimal("0.00")
    coupon_code: Optional[str] = None
    # Accepted and ignored: totals are always recomputed server-side.
    total: Optional[Decimal] = None
    discount: Optional[Decimal] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[CheckoutItemDTO]) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Cart must have at least one item.")
        return v

    @field_validator("shipping")
    @classmethod
    def shipping_not_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Shipping cannot be negative.")
        return v

    @field_validator("coupon_code")
    @classmethod
    def blank_coupon_is_none(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None


class PixCheckoutDTO(CheckoutDTO):
    pass


class CardCheckoutDTO(CheckoutDTO):
    payment_token: str
    installments: int = 1

    @field_validator("installments")
    @classmethod
    def installments_in_range(cls, v: int) -> int:
        if not 1 <= v <= 12:
            raise ValueError("Installments must be between 1 and 12.")
        return v
