from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol


@dataclass(frozen=True)
class PayoutSendStatus:
    provider_ref: str
    status: str  # EM_PROCESSAMENTO | REALIZADO | NAO_REALIZADO
    end_to_end_id: Optional[str] = None
    txid: Optional[str] = None
    settled_at: Optional[str] = None


class PayoutProvider(Protocol):
    def send_payout(self, order_id: int, amount: Decimal, beneficiary_key: str) -> str:
        """Send the transfer and return the provider reference (idEnvio)."""
        ...

    def get_send_status(self, provider_ref: str) -> PayoutSendStatus: ...
