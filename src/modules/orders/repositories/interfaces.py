"""Order repository interface.

Extends ``IRepository[Order]`` with the operations the Order aggregate
needs: atomic creation with items, guarded (conditional) status writes,
reference look-ups and sweep queries.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root."""

    @abstractmethod
    def create(self, data: Dict[str, Any], items: List[Dict[str, Any]]) -> Order:
        """Insert a NEW order and its items atomically."""

    @abstractmethod
    def get_for_update(self, id: int) -> Optional[Order]:
        """Order row locked for the rest of the transaction (with items)."""

    @abstractmethod
    def get_by_reference(
        self,
        *,
        txid: Optional[str] = None,
        charge_id: Optional[str] = None,
        for_update: bool = False,
    ) -> Optional[Order]:
        """Resolve a gateway reference (PIX txid or card charge id)."""

    @abstractmethod
    def transition(
        self,
        order_id: int,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        require_unpaid: bool = False,
        fields: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Conditional status write; ``True`` only if this call changed the row."""

    @abstractmethod
    def update_fields(self, order_id: int, **fields: Any) -> None:
        """Write non-status attributes (gateway references, QR code)."""

    @abstractmethod
    def claim_stock_release(self, order_id: int) -> bool:
        """Flip ``stock_reserved`` True -> False; ``True`` for the single winner."""

    @abstractmethod
    def add_history(
        self,
        order_id: int,
        old_status: Optional[str],
        new_status: str,
        source: str,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    @abstractmethod
    def find_expired_reservations(self, now: datetime, limit: int) -> List[Order]:
        """Unpaid orders still holding stock whose window has closed."""

    @abstractmethod
    def find_lapsed_late_payments(self, now: datetime, limit: int) -> List[Order]:
        """Late-paid (REFUNDED) orders whose stock was never given back."""

    @abstractmethod
    def record_events(self, order: Order, topic: str = "orders") -> int:
        """Flush the aggregate's pending domain events to the outbox."""
