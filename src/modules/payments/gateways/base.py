"""Payment gateway contracts.

Checkout, watcher and sweep depend on these protocols only; the concrete
client is chosen by ``PAYMENTS_GATEWAY_MODE``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Protocol


@dataclass(frozen=True)
class PixCollection:
    txid: str
    qr_code: str
    qr_code_base64: str
    status: str = "ATIVA"


@dataclass(frozen=True)
class CardCharge:
    charge_id: Optional[str]
    status: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CardChargeRequest:
    """Everything the card provider needs for a one-step charge."""

    order_id: int
    amount: Decimal
    payment_token: str
    installments: int
    customer: Dict[str, str]
    billing_address: Dict[str, str]
    items: List[Dict[str, Any]]
    shipping: Decimal = Decimal("0.00")
    discount: Decimal = Decimal("0.00")


class PixGateway(Protocol):
    def create_collection(
        self, txid: str, amount: Decimal, description: str, ttl_seconds: int
    ) -> PixCollection: ...

    def get_status(self, txid: str) -> str: ...

    def cancel(self, txid: str) -> bool: ...


class CardGateway(Protocol):
    def create_charge(self, request: CardChargeRequest) -> CardCharge: ...

    def get_status(self, charge_id: str) -> str: ...

    def cancel(self, charge_id: str) -> bool: ...
