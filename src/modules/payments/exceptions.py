"""Payments domain exceptions.

The checkout API maps these to the standard error envelope:
``GatewayError`` -> 502 ``gateway_error`` (retry by resubmitting),
``CheckoutValidationError`` -> 400 ``validation_error`` (fix the input).
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """A call to the payment or payout provider failed.

    Covers timeouts, non-2xx responses and malformed bodies.  Carries
    enough context for manual reconciliation.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        reference: Optional[str] = None,
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.reference = reference
        self.body = body[:500]
        super().__init__(message)


class CheckoutValidationError(Exception):
    """Malformed checkout request or total below the minimum.

    Rejected before any side effect.
    """

    def __init__(self, detail: str, code: str = "invalid", attr: Optional[str] = None) -> None:
        self.detail = detail
        self.code = code
        self.attr = attr
        super().__init__(detail)
