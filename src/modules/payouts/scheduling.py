"""Deferred payouts for card orders.

Card funds settle with the acquirer long after authorization, so card
orders are paid out by a daily batch once ``PAYOUT_CARD_DELAY_DAYS`` have
passed since ``paid_at``.  Orders that already have a payout row (in any
status) are never picked again; a FAILED card payout is retried through
the manual trigger.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

import structlog
from django.conf import settings

from modules.orders.constants import PaymentMethod
from modules.orders.models import Order
from modules.payouts.services import PayoutTriggerService

logger = structlog.get_logger(__name__)

CARD_SCHEDULED_SOURCE = "CARD-SCHEDULED"


@dataclass
class CardPayoutRun:
    picked: int = 0
    ok: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class CardPayoutScheduler:
    def __init__(
        self,
        trigger: Optional[PayoutTriggerService] = None,
        delay_days: Optional[int] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        self._trigger = trigger or PayoutTriggerService()
        self._delay_days = (
            settings.PAYOUT_CARD_DELAY_DAYS if delay_days is None else delay_days
        )
        self._batch_size = batch_size or settings.PAYOUT_CARD_BATCH_SIZE

    def due_orders(self, now: datetime):
        cutoff = now - timedelta(days=self._delay_days)
        return (
            Order.objects.filter(
                payment_method=PaymentMethod.CARD,
                paid=True,
                charge_id__isnull=False,
                paid_at__lte=cutoff,
                payout__isnull=True,
            )
            .order_by("paid_at")
            .only("id", "charge_id")[: self._batch_size]
        )

    def run(self, now: datetime) -> CardPayoutRun:
        run = CardPayoutRun()
        for order in self.due_orders(now):
            run.picked += 1
            try:
                result = self._trigger.try_trigger(
                    str(order.pk),
                    external_id=order.charge_id or CARD_SCHEDULED_SOURCE,
                    source=CARD_SCHEDULED_SOURCE,
                )
            except Exception as exc:
                run.failed += 1
                logger.exception(
                    "payout.card_trigger_crashed", order_id=order.pk, error=str(exc)
                )
                continue

            if result.succeeded:
                run.ok += 1
            else:
                run.failed += 1
                logger.warning(
                    "payout.card_trigger_failed",
                    order_id=order.pk,
                    status=result.status,
                    message=result.message,
                )

        logger.info("payout.card_batch_done", **run.to_dict())
        return run
