"""Coupon validation and usage registration.

Discounts are always recomputed here from the coupon's own rule; any
discount value asserted by the client is ignored upstream.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import structlog

from modules.coupons.exceptions import InvalidCoupon
from modules.coupons.models import CENT, Coupon, OrderCoupon

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponValidation:
    coupon: Coupon
    discount_amount: Decimal
    final_total: Decimal


class CouponService:
    def find_active(self, code: str) -> Optional[Coupon]:
        return Coupon.objects.filter(code__iexact=code.strip(), active=True).first()

    def validate(
        self,
        code: str,
        order_total: Decimal,
        customer_email: Optional[str] = None,
    ) -> CouponValidation:
        """Check every coupon rule against ``order_total``.

        Raises:
            InvalidCoupon: not found/inactive, outside the validity window,
                below minimum order value, usage limit or per-user limit
                reached.
        """
        log = logger.bind(coupon_code=code, order_total=str(order_total))

        coupon = self.find_active(code)
        if coupon is None:
            log.info("coupon.rejected", reason="not_found")
            raise InvalidCoupon(code, "Cupom não encontrado ou inativo")

        if not coupon.is_currently_valid():
            log.info("coupon.rejected", reason="expired")
            raise InvalidCoupon(code, "Cupom expirado ou fora do período de validade")

        if order_total < coupon.minimum_order_value:
            log.info("coupon.rejected", reason="minimum_order_value")
            raise InvalidCoupon(
                code,
                "Valor mínimo do pedido não atingido. "
                f"Mínimo: R$ {coupon.minimum_order_value}",
            )

        if coupon.usage_limit is not None:
            if coupon.usages.count() >= coupon.usage_limit:
                log.info("coupon.rejected", reason="usage_limit")
                raise InvalidCoupon(code, "Cupom esgotado")

        if coupon.usage_limit_per_user is not None and customer_email:
            user_usage = coupon.usages.filter(
                customer_email__iexact=customer_email
            ).count()
            if user_usage >= coupon.usage_limit_per_user:
                log.info("coupon.rejected", reason="usage_limit_per_user")
                raise InvalidCoupon(code, "Limite de uso por usuário atingido")

        discount = coupon.calculate_discount(order_total)
        final_total = order_total - discount
        if final_total < CENT:
            log.info("coupon.rejected", reason="discount_too_high")
            raise InvalidCoupon(
                code, "Desconto muito alto. Valor mínimo do pedido deve ser R$ 0,01"
            )

        log.info("coupon.validated", discount=str(discount), final_total=str(final_total))
        return CouponValidation(
            coupon=coupon, discount_amount=discount, final_total=final_total
        )

    def register_usage(
        self,
        order: Order,
        validation: CouponValidation,
        original_total: Decimal,
    ) -> OrderCoupon:
        usage = OrderCoupon.objects.create(
            order=order,
            coupon=validation.coupon,
            customer_email=order.email or "",
            original_total=original_total,
            discount_amount=validation.discount_amount,
            final_total=validation.final_total,
        )
        logger.info(
            "coupon.usage_registered",
            order_id=order.pk,
            coupon_code=validation.coupon.code,
        )
        return usage
