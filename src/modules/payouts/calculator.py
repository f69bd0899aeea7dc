"""Net payout computation.

    fee    = round2(gross * fee_percent / 100) + fee_fixed   (only if fees are passed through)
    margin = round2(gross * margin_percent / 100) + margin_fixed
    net    = round2(gross - fee - margin)

Every monetary part is rounded HALF_UP to cents.  A non-positive
deduction (``net >= gross``) is a misconfiguration and is clamped to
``gross - 0.01``; ``net`` is never negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings

from modules.payouts.constants import ABSOLUTE_MIN_SEND, CENT

ZERO = Decimal("0.00")


def round2(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or "0"))


@dataclass(frozen=True)
class PayoutParameters:
    fee_percent: Decimal
    fee_fixed: Decimal
    margin_percent: Decimal
    margin_fixed: Decimal
    include_gateway_fees: bool
    min_send: Decimal

    @property
    def effective_min_send(self) -> Decimal:
        return max(self.min_send, ABSOLUTE_MIN_SEND)

    @classmethod
    def from_settings(cls) -> "PayoutParameters":
        return cls(
            fee_percent=to_decimal(settings.PAYOUT_FEE_PERCENT),
            fee_fixed=to_decimal(settings.PAYOUT_FEE_FIXED),
            margin_percent=to_decimal(settings.PAYOUT_MARGIN_PERCENT),
            margin_fixed=to_decimal(settings.PAYOUT_MARGIN_FIXED),
            include_gateway_fees=settings.PAYOUT_INCLUDE_GATEWAY_FEES,
            min_send=to_decimal(settings.PAYOUT_MIN_SEND),
        )


@dataclass(frozen=True)
class PayoutBreakdown:
    gross: Decimal
    fee: Decimal
    margin: Decimal
    net: Decimal
    clamped: bool = False


def compute_breakdown(
    gross: Decimal,
    fee_percent: Decimal,
    fee_fixed: Decimal,
    margin_percent: Decimal,
    margin_fixed: Decimal,
    include_gateway_fees: bool = True,
) -> PayoutBreakdown:
    gross = round2(max(to_decimal(gross), ZERO))

    fee = ZERO
    if include_gateway_fees:
        fee = round2(gross * to_decimal(fee_percent) / 100) + round2(to_decimal(fee_fixed))
    margin = round2(gross * to_decimal(margin_percent) / 100) + round2(
        to_decimal(margin_fixed)
    )
    net = round2(gross - fee - margin)

    clamped = False
    if net >= gross:
        net = gross - CENT
        clamped = True
    if net < ZERO:
        net = ZERO
    return PayoutBreakdown(gross=gross, fee=fee, margin=margin, net=net, clamped=clamped)


def breakdown_for(gross: Decimal, params: PayoutParameters) -> PayoutBreakdown:
    return compute_breakdown(
        gross,
        params.fee_percent,
        params.fee_fixed,
        params.margin_percent,
        params.margin_fixed,
        params.include_gateway_fees,
    )
