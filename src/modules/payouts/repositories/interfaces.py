"""Payout repository contract.

Every write is guarded so the payout state machine never regresses.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from modules.core.repositories.interfaces import IRepository
from modules.payouts.models import Payout


class IPayoutRepository(IRepository[Payout]):
    @abstractmethod
    def get_by_order(self, order_id: int) -> Optional[Payout]: ...

    @abstractmethod
    def upsert_created(self, order_id: int, fields: Dict[str, Any]) -> bool:
        """Insert or reset to CREATED unless the row is SENT or CONFIRMED."""
        ...

    @abstractmethod
    def mark_sent(self, order_id: int, provider_ref: str) -> bool:
        """CREATED/FAILED -> SENT."""
        ...

    @abstractmethod
    def mark_confirmed(
        self,
        order_id: int,
        end_to_end_id: Optional[str] = None,
        confirmed_at: Optional[datetime] = None,
    ) -> bool:
        """CREATED/SENT/FAILED -> CONFIRMED."""
        ...

    @abstractmethod
    def mark_failed(self, order_id: int, reason: str) -> bool:
        """Any status but CONFIRMED -> FAILED."""
        ...
