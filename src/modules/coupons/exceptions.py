"""Coupon domain exceptions."""

from __future__ import annotations


class InvalidCoupon(Exception):
    """The coupon code cannot be applied to this order.

    The message is customer-facing (pt-BR), as shown by the storefront.
    """

    def __init__(self, code: str, reason: str) -> None:
        self.coupon_code = code
        self.reason = reason
        super().__init__(reason)
