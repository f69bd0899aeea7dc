"""Payout and Seller models.

``Payout`` is one-to-one with ``Order`` and is only ever written through
``PayoutDjangoRepository``, whose conditional updates keep the state
machine monotonic: CREATED -> SENT -> CONFIRMED, FAILED before
CONFIRMED, and nothing after CONFIRMED.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from django.db import models

from modules.core.models import BaseModel
from modules.orders.models import Order
from modules.payouts.constants import PayoutStatus


class Seller(BaseModel):
    """Payment site author: payout beneficiary and seller email recipient."""

    name: models.CharField = models.CharField(max_length=150)
    email: models.EmailField = models.EmailField(blank=True, default="")
    pix_key: models.CharField = models.CharField(max_length=100, blank=True, default="")
    active: models.BooleanField = models.BooleanField(default=True)

    class Meta:
        db_table = "sellers"
        ordering = ["created_at"]

    @classmethod
    def active_seller(cls) -> Optional["Seller"]:
        return cls.objects.filter(active=True).order_by("created_at").first()

    def __str__(self) -> str:
        return self.name


class Payout(BaseModel):
    order: models.OneToOneField = models.OneToOneField(
        Order,
        on_delete=models.PROTECT,
        related_name="payout",
    )
    status: models.CharField = models.CharField(
        max_length=10, choices=PayoutStatus.choices, default=PayoutStatus.CREATED
    )
    amount_gross: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    amount_net: models.DecimalField = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    # Parameter snapshot used for this computation
    include_gateway_fees: models.BooleanField = models.BooleanField(default=True)
    fee_percent: models.DecimalField = models.DecimalField(
        max_digits=6, decimal_places=3, default=Decimal("0")
    )
    fee_fixed: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    margin_percent: models.DecimalField = models.DecimalField(
        max_digits=6, decimal_places=3, default=Decimal("0")
    )
    margin_fixed: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    min_send: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )

    pix_key: models.CharField = models.CharField(max_length=100, blank=True, default="")
    provider_ref: models.CharField = models.CharField(
        max_length=35, blank=True, default="", db_index=True
    )
    end_to_end_id: models.CharField = models.CharField(max_length=64, blank=True, default="")
    source: models.CharField = models.CharField(max_length=30, blank=True, default="")
    fail_reason: models.TextField = models.TextField(blank=True, default="")

    sent_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "payment_payouts"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="payouts_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payout order={self.order_id} {self.status} net={self.amount_net}"
