"""Event handlers for Orders domain events (in-process bus)."""

from __future__ import annotations

import structlog
from django.core.cache import cache

from modules.orders.events import LatePaymentReceived, OrderPaid
from shared.domain.bus import IEventHandler

logger = structlog.get_logger(__name__)

PAID_SIGNAL_TTL_SECONDS = 60 * 60


def paid_signal_key(order_id: str | int) -> str:
    return f"order:{order_id}:paid"


class OrderPaidRealtimeHandler(IEventHandler[OrderPaid]):
    """Flags the order as paid in the cache watched by the storefront."""

    def handle(self, event: OrderPaid) -> None:
        cache.set(paid_signal_key(event.aggregate_id), True, PAID_SIGNAL_TTL_SECONDS)
        logger.info(
            "order.paid_signal_published",
            order_id=event.aggregate_id,
            payment_method=event.payment_method,
        )


class LatePaymentHandler(IEventHandler[LatePaymentReceived]):
    def handle(self, event: LatePaymentReceived) -> None:
        logger.warning(
            "order.late_payment_needs_refund",
            order_id=event.aggregate_id,
            reference=event.reference,
            total=event.total,
        )


order_paid_realtime_handler = OrderPaidRealtimeHandler()
late_payment_handler = LatePaymentHandler()
