"""Normalization of provider status strings."""

from __future__ import annotations

from typing import Optional

from modules.orders.constants import PaymentMethod
from modules.payments.constants import (
    CARD_PAID_STATUSES,
    PIX_PAID_STATUSES,
    PROVIDER_STATUS_MAP,
)


def normalize(raw: Optional[str]) -> str:
    return (raw or "").strip().upper()


def is_paid_status(raw: Optional[str], method: str) -> bool:
    """Whether ``raw`` means the money was received for ``method``."""
    token = normalize(raw)
    if not token:
        return False
    if method == PaymentMethod.CARD:
        return token in CARD_PAID_STATUSES
    return token in PIX_PAID_STATUSES


def map_provider_status(raw: Optional[str]) -> Optional[str]:
    """Order status for a non-paid provider status, ``None`` if unknown."""
    return PROVIDER_STATUS_MAP.get((raw or "").strip().lower())
