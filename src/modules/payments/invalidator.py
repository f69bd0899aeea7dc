"""Reservation TTL invalidator.

Scheduled sweep that closes payment windows nobody paid into:

- cancels the collection/charge at the gateway (best effort: "not
  found" counts as cancelled, and one failure never stops the sweep);
- moves the order to EXPIRED and gives the stock back through
  ``OrderService.expire_reservation``, which re-reads ``paid`` under lock
  so a payment that landed concurrently wins;
- gives back stock still held by late payments (REFUNDED orders).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog
from django.utils import timezone

from modules.orders.constants import PaymentMethod, StatusSource
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService, build_order_service
from modules.payments.exceptions import GatewayError
from modules.payments.gateways import (
    CardGateway,
    PixGateway,
    get_card_gateway,
    get_pix_gateway,
)

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 200


@dataclass
class InvalidationReport:
    scanned: int = 0
    expired: int = 0
    skipped: int = 0
    cancel_failures: int = 0
    late_payments_released: int = 0

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "expired": self.expired,
            "skipped": self.skipped,
            "cancel_failures": self.cancel_failures,
            "late_payments_released": self.late_payments_released,
        }


class ReservationInvalidator:
    def __init__(
        self,
        order_service: Optional[OrderService] = None,
        order_repository: Optional[OrderDjangoRepository] = None,
        pix_gateway: Optional[PixGateway] = None,
        card_gateway: Optional[CardGateway] = None,
    ) -> None:
        self._orders = order_service or build_order_service()
        self._repo = order_repository or OrderDjangoRepository()
        self._pix = pix_gateway
        self._card = card_gateway

    @property
    def pix_gateway(self) -> PixGateway:
        if self._pix is None:
            self._pix = get_pix_gateway()
        return self._pix

    @property
    def card_gateway(self) -> CardGateway:
        if self._card is None:
            self._card = get_card_gateway()
        return self._card

    def run(
        self, now: Optional[datetime] = None, limit: int = DEFAULT_BATCH_SIZE
    ) -> InvalidationReport:
        now = now or timezone.now()
        report = InvalidationReport()

        for order in self._repo.find_expired_reservations(now, limit):
            report.scanned += 1
            if not self._cancel_at_gateway(order):
                report.cancel_failures += 1
            expired = self._orders.expire_reservation(
                order.pk,
                source=StatusSource.SWEEP,
                reason="Reservation TTL elapsed",
            )
            if expired:
                report.expired += 1
            else:
                report.skipped += 1

        for order in self._repo.find_lapsed_late_payments(now, limit):
            if self._orders.release_lapsed_late_payment(order.pk):
                report.late_payments_released += 1

        logger.info("reservations.sweep_finished", **report.to_dict())
        return report

    def _cancel_at_gateway(self, order: Order) -> bool:
        """Best-effort cancel; ``True`` when nothing was left to cancel."""
        if order.paid:
            return True
        log = logger.bind(order_id=order.pk, payment_method=order.payment_method)
        try:
            if order.payment_method == PaymentMethod.CARD and order.charge_id:
                cancelled = self.card_gateway.cancel(order.charge_id)
            elif order.payment_method == PaymentMethod.PIX and order.txid:
                cancelled = self.pix_gateway.cancel(order.txid)
            else:
                return True
        except GatewayError as exc:
            log.warning("reservations.cancel_failed", error=str(exc), status_code=exc.status_code)
            return False
        if not cancelled:
            log.warning("reservations.cancel_failed", reference=order.reference)
        return cancelled
