"""Coupon and per-order coupon audit models."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.db import models
from django.utils import timezone

CENT = Decimal("0.01")


class DiscountType(models.TextChoices):
    FIXED = "FIXED", "Valor fixo"
    PERCENTAGE = "PERCENTAGE", "Percentual"


class Coupon(models.Model):
    """Discount rule looked up by ``code`` (case-insensitive)."""

    code: models.CharField = models.CharField(max_length=50, unique=True)
    name: models.CharField = models.CharField(max_length=200)
    description: models.TextField = models.TextField(blank=True, default="")
    discount_type: models.CharField = models.CharField(
        max_length=20, choices=DiscountType.choices
    )
    discount_value: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2
    )
    minimum_order_value: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00")
    )
    maximum_discount_value: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True
    )
    usage_limit: models.PositiveIntegerField = models.PositiveIntegerField(
        null=True, blank=True
    )
    usage_limit_per_user: models.PositiveIntegerField = models.PositiveIntegerField(
        null=True, blank=True
    )
    valid_from: models.DateTimeField = models.DateTimeField(default=timezone.now)
    valid_until: models.DateTimeField = models.DateTimeField(null=True, blank=True)
    active: models.BooleanField = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "coupons"
        indexes = [
            models.Index(fields=["active"], name="coupons_active_idx"),
            models.Index(
                fields=["valid_from", "valid_until"], name="coupons_valid_dates_idx"
            ),
        ]

    def is_currently_valid(self, now=None) -> bool:
        now = now or timezone.now()
        if not self.active or now < self.valid_from:
            return False
        return self.valid_until is None or now < self.valid_until

    def calculate_discount(self, order_total: Decimal) -> Decimal:
        """Discount for ``order_total``, never leaving less than one cent."""
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = (order_total * self.discount_value / Decimal("100")).quantize(
                CENT, rounding=ROUND_HALF_UP
            )
            if self.maximum_discount_value is not None:
                discount = min(discount, self.maximum_discount_value)
        else:
            discount = self.discount_value

        ceiling = order_total - CENT
        if discount > ceiling:
            discount = max(ceiling, Decimal("0.00"))
        return discount.quantize(CENT)

    def __str__(self) -> str:
        return self.code


class OrderCoupon(models.Model):
    """Which coupon an order used and what it was worth at checkout time."""

    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="coupon_usage",
    )
    coupon: models.ForeignKey = models.ForeignKey(
        Coupon,
        on_delete=models.PROTECT,
        related_name="usages",
    )
    customer_email: models.EmailField = models.EmailField(blank=True, default="")
    original_total: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2
    )
    discount_amount: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2
    )
    final_total: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_coupons"
        indexes = [
            models.Index(
                fields=["coupon", "customer_email"], name="order_coupons_user_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.coupon} -> order {self.order_id}"
