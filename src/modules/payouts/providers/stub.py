from __future__ import annotations

import uuid
from decimal import Decimal

import structlog

from modules.payouts.providers.base import PayoutSendStatus

logger = structlog.get_logger(__name__)


class StubPayoutProvider:
    """Accepts every transfer; settlement is confirmed synchronously by the caller."""

    def send_payout(self, order_id: int, amount: Decimal, beneficiary_key: str) -> str:
        provider_ref = "STUB" + uuid.uuid4().hex[:8].upper()
        logger.info(
            "payout.stub_sent", order_id=order_id, amount=str(amount), provider_ref=provider_ref
        )
        return provider_ref

    def get_send_status(self, provider_ref: str) -> PayoutSendStatus:
        return PayoutSendStatus(provider_ref=provider_ref, status="REALIZADO")
