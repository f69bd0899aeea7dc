"""Payout domain exceptions."""

from __future__ import annotations

from modules.payments.exceptions import GatewayError


class PayoutProviderError(GatewayError):
    """The payout provider rejected or failed the transfer request."""
