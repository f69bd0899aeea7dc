"""Django ORM implementation of the Payout repository.

Each transition is one ``UPDATE ... WHERE order_id = ? AND status ...``;
the affected-row count tells the caller whether it moved the row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from django.db import IntegrityError, transaction
from django.db.models.functions import Coalesce
from django.db.models import Value
from django.utils import timezone

from modules.payouts.constants import PayoutStatus
from modules.payouts.models import Payout
from modules.payouts.repositories.interfaces import IPayoutRepository

logger = structlog.get_logger(__name__)

PROGRESSED_STATUSES = (PayoutStatus.SENT, PayoutStatus.CONFIRMED)


class PayoutDjangoRepository(IPayoutRepository):
    def get_by_id(self, id) -> Optional[Payout]:
        return Payout.objects.filter(pk=id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None):
        queryset = Payout.objects.all()
        if filters:
            queryset = queryset.filter(**filters)
        return queryset

    def get_by_order(self, order_id: int) -> Optional[Payout]:
        return Payout.objects.filter(order_id=order_id).first()

    def upsert_created(self, order_id: int, fields: Dict[str, Any]) -> bool:
        try:
            with transaction.atomic():
                Payout.objects.create(
                    order_id=order_id, status=PayoutStatus.CREATED, **fields
                )
            logger.info("payout.created", order_id=order_id)
            return True
        except IntegrityError:
            pass

        rows = (
            Payout.objects.filter(order_id=order_id)
            .exclude(status__in=PROGRESSED_STATUSES)
            .update(
                status=PayoutStatus.CREATED,
                fail_reason="",
                failed_at=None,
                updated_at=timezone.now(),
                **fields,
            )
        )
        logger.info("payout.upsert_created", order_id=order_id, rows=rows)
        return rows == 1

    def mark_sent(self, order_id: int, provider_ref: str) -> bool:
        now = timezone.now()
        rows = Payout.objects.filter(
            order_id=order_id,
            status__in=[PayoutStatus.CREATED, PayoutStatus.FAILED],
        ).update(
            status=PayoutStatus.SENT,
            provider_ref=provider_ref,
            sent_at=now,
            fail_reason="",
            updated_at=now,
        )
        logger.info("payout.mark_sent", order_id=order_id, provider_ref=provider_ref, rows=rows)
        return rows == 1

    def mark_confirmed(
        self,
        order_id: int,
        end_to_end_id: Optional[str] = None,
        confirmed_at: Optional[datetime] = None,
    ) -> bool:
        now = timezone.now()
        fields: Dict[str, Any] = {
            "status": PayoutStatus.CONFIRMED,
            "confirmed_at": Coalesce("confirmed_at", Value(confirmed_at or now)),
            "updated_at": now,
        }
        if end_to_end_id:
            fields["end_to_end_id"] = end_to_end_id
        rows = Payout.objects.filter(
            order_id=order_id,
            status__in=[PayoutStatus.SENT, PayoutStatus.CREATED, PayoutStatus.FAILED],
        ).update(**fields)
        logger.info("payout.mark_confirmed", order_id=order_id, rows=rows)
        return rows == 1

    def mark_failed(self, order_id: int, reason: str) -> bool:
        now = timezone.now()
        rows = (
            Payout.objects.filter(order_id=order_id)
            .exclude(status=PayoutStatus.CONFIRMED)
            .update(
                status=PayoutStatus.FAILED,
                fail_reason=reason[:1000],
                failed_at=now,
                updated_at=now,
            )
        )
        logger.info("payout.mark_failed", order_id=order_id, reason=reason, rows=rows)
        return rows == 1
