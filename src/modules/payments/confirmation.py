"""Payment confirmation reconciliation.

Webhooks, the PIX poller, the card checkout and the admin reconcile
endpoint all call ``PaymentConfirmationService.handle_status``.  A paid
status runs ``OrderService.confirm_payment`` (at most once per order);
anything else may only move the order to a secondary status.

The side effects of a confirmation (emails, the real-time "paid" signal,
the payout) run from the ``OrderPaid`` outbox event, after the payment
has committed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import structlog

from modules.orders.constants import PaymentMethod, StatusSource
from modules.orders.events import LatePaymentReceived, OrderPaid
from modules.orders.models import Order
from modules.orders.services import ConfirmationOutcome, OrderService, build_order_service
from modules.payments.status import is_paid_status, map_provider_status
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StatusHandling:
    """What ``handle_status`` did with one provider status."""

    paid: bool
    outcome: Optional[ConfirmationOutcome] = None
    applied_status: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.outcome is ConfirmationOutcome.CONFIRMED or bool(self.applied_status)


class PaymentConfirmationService:
    def __init__(self, order_service: Optional[OrderService] = None) -> None:
        self._orders = order_service or build_order_service()

    def handle_status(
        self,
        reference: str,
        raw_status: Optional[str],
        method: str,
        source: str = StatusSource.WEBHOOK,
    ) -> StatusHandling:
        """Reconcile one provider status for the order behind ``reference``."""
        reference = (reference or "").strip()
        log = logger.bind(reference=reference, raw_status=raw_status, source=source)
        if not reference:
            log.info("payment.status_ignored", reason="no_reference")
            return StatusHandling(paid=False)

        ref_kwargs = (
            {"charge_id": reference}
            if method == PaymentMethod.CARD
            else {"txid": reference}
        )

        if is_paid_status(raw_status, method):
            outcome = self._orders.confirm_payment(source=source, **ref_kwargs)
            return StatusHandling(paid=True, outcome=outcome)

        new_status = map_provider_status(raw_status)
        if new_status is None:
            log.info("payment.status_ignored", reason="unknown_status")
            return StatusHandling(paid=False)

        applied = self._orders.apply_provider_status(new_status, source=source, **ref_kwargs)
        return StatusHandling(paid=False, applied_status=new_status if applied else None)


# ----------------------------------------------------------------------
# Outbox handlers (post-commit side effects)
# ----------------------------------------------------------------------


def _best_effort(step: str, order_id: Any, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except Exception as exc:
        logger.exception(
            "notification.failed", step=step, order_id=order_id, error=str(exc)
        )
        return None


def _paid_event(payload: Dict[str, Any]) -> OrderPaid:
    return OrderPaid(
        aggregate_id=payload["aggregate_id"],
        payment_method=payload.get("payment_method", ""),
        reference=payload.get("reference", ""),
        total=payload.get("total", "0.00"),
        source=payload.get("source", ""),
    )


def payout_source(payload: Dict[str, Any]) -> str:
    """``PIX-WEBHOOK``, ``PIX-POLLER``, ``PIX-ADMIN`` ... from the confirming trigger."""
    return f"PIX-{payload.get('source') or StatusSource.WEBHOOK.value}"


def on_order_paid(payload: Dict[str, Any]) -> None:
    """Side effects of a confirmed payment.

    Emails and the real-time signal are best effort; each is gated so a
    redelivered event never sends twice.  The payout trigger is allowed
    to raise: the outbox marks the event FAILED and retries it, and the
    trigger itself is idempotent.
    """
    from modules.notifications.constants import EmailKind
    from modules.notifications.services import NotificationService
    from modules.payouts.models import Seller
    from modules.payouts.notifier import notify_payout_result
    from modules.payouts.services import PayoutTriggerService

    order = Order.objects.prefetch_related("items").get(pk=int(payload["aggregate_id"]))
    log = logger.bind(order_id=order.pk, payment_method=order.payment_method)
    notifications = NotificationService()
    seller = Seller.active_seller()

    _best_effort(
        "realtime_publish", order.pk, lambda: event_bus.publish(_paid_event(payload))
    )
    _best_effort(
        "client_email",
        order.pk,
        lambda: notifications.send_once(EmailKind.ORDER_PAID_CLIENT, order, order.email),
    )
    if seller is not None and seller.email:
        _best_effort(
            "seller_email",
            order.pk,
            lambda: notifications.send_once(
                EmailKind.ORDER_PAID_SELLER, order, seller.email
            ),
        )

    if order.payment_method == PaymentMethod.PIX:
        result = PayoutTriggerService().try_trigger(
            str(order.pk),
            external_id=order.txid or "",
            source=payout_source(payload),
        )
        log.info("payment.payout_triggered", result=result.status)
        _best_effort(
            "payout_email", order.pk, lambda: notify_payout_result(order, result)
        )
    elif seller is not None and seller.email:
        _best_effort(
            "card_payout_scheduled_email",
            order.pk,
            lambda: notifications.send_once(
                EmailKind.CARD_PAYOUT_SCHEDULED, order, seller.email
            ),
        )


def on_late_payment(payload: Dict[str, Any]) -> None:
    event = LatePaymentReceived(
        aggregate_id=payload["aggregate_id"],
        reference=payload.get("reference", ""),
        total=payload.get("total", "0.00"),
    )
    event_bus.publish(event)
