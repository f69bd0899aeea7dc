"""Django ORM implementation of the Order repository.

Every status write is a single ``UPDATE ... WHERE status IN (...)``
(optionally ``AND paid = false``): the affected-row count decides which
concurrent caller performed the transition, so callers never need an
application-level lock.  ``select_for_update`` is used only to read a
stable snapshot before deciding which transition to attempt.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.db import transaction
from django.utils import timezone

from modules.core.outbox import record_event
from modules.orders.constants import HOLDING_STATUSES, OrderStatus, StatusSource
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any], items: List[Dict[str, Any]]) -> Order:
        order = Order.objects.create(status=OrderStatus.NEW, **data)
        OrderItem.objects.bulk_create(
            [OrderItem(order=order, **item) for item in items]
        )
        self.add_history(
            order.pk, None, OrderStatus.NEW, StatusSource.CHECKOUT, "Order created"
        )
        logger.info("order.created", order_id=order.pk, item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: int | str) -> Optional[Order]:
        try:
            return (
                Order.objects.prefetch_related("items", "status_history")
                .filter(pk=int(id))
                .first()
            )
        except (TypeError, ValueError):
            return None

    def list(self, filters: Optional[Dict[str, Any]] = None):
        queryset = Order.objects.prefetch_related("items")
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_for_update(self, id: int) -> Optional[Order]:
        return (
            Order.objects.select_for_update()
            .prefetch_related("items")
            .filter(pk=id)
            .first()
        )

    def get_by_reference(
        self,
        *,
        txid: Optional[str] = None,
        charge_id: Optional[str] = None,
        for_update: bool = False,
    ) -> Optional[Order]:
        if not txid and not charge_id:
            return None
        queryset = Order.objects.prefetch_related("items")
        if for_update:
            queryset = queryset.select_for_update()
        if txid:
            return queryset.filter(txid=txid).first()
        return queryset.filter(charge_id=charge_id).first()

    # ------------------------------------------------------------------
    # Guarded writes
    # ------------------------------------------------------------------

    def transition(
        self,
        order_id: int,
        *,
        from_statuses: Iterable[str],
        to_status: str,
        require_unpaid: bool = False,
        fields: Optional[Dict[str, Any]] = None,
    ) -> bool:
        queryset = Order.objects.filter(pk=order_id, status__in=list(from_statuses))
        if require_unpaid:
            queryset = queryset.filter(paid=False)
        rows = queryset.update(
            status=to_status, updated_at=timezone.now(), **(fields or {})
        )
        return rows == 1

    def update_fields(self, order_id: int, **fields: Any) -> None:
        Order.objects.filter(pk=order_id).update(updated_at=timezone.now(), **fields)

    def claim_stock_release(self, order_id: int) -> bool:
        rows = Order.objects.filter(pk=order_id, stock_reserved=True).update(
            stock_reserved=False, updated_at=timezone.now()
        )
        return rows == 1

    def add_history(
        self,
        order_id: int,
        old_status: Optional[str],
        new_status: str,
        source: str,
        notes: str = "",
    ) -> OrderStatusHistory:
        history = OrderStatusHistory.objects.create(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            source=source,
            notes=notes,
        )
        logger.info(
            "order.history_added",
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            source=source,
        )
        return history

    # ------------------------------------------------------------------
    # Sweep queries
    # ------------------------------------------------------------------

    def find_expired_reservations(self, now: datetime, limit: int) -> List[Order]:
        return list(
            Order.objects.filter(
                status__in=HOLDING_STATUSES,
                paid=False,
                reserve_expires_at__isnull=False,
                reserve_expires_at__lt=now,
            ).order_by("reserve_expires_at")[:limit]
        )

    def find_lapsed_late_payments(self, now: datetime, limit: int) -> List[Order]:
        return list(
            Order.objects.filter(
                status=OrderStatus.REFUNDED,
                stock_reserved=True,
                reserve_expires_at__isnull=False,
                reserve_expires_at__lt=now,
            ).order_by("reserve_expires_at")[:limit]
        )

    # ------------------------------------------------------------------
    # Outbox
    # ------------------------------------------------------------------

    def record_events(self, order: Order, topic: str = "orders") -> int:
        events = order.domain_events
        for event in events:
            record_event(
                event_type=event.event_name,
                aggregate_id=event.aggregate_id,
                payload=event.to_payload(),
                topic=topic,
            )
        order.clear_domain_events()
        return len(events)
