"""PIX payment watcher.

Webhooks are the primary confirmation channel, but PIX providers do not
always push them.  After a collection is created the watcher schedules a
bounded series of status polls; every poll funnels into the same
idempotent confirmation routine as the webhook.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog
from django.conf import settings
from django.utils import timezone

from modules.payments.tasks import poll_pix_status

logger = structlog.get_logger(__name__)


def plan_offsets(
    offsets: Sequence[int],
    started_at: datetime,
    expires_at: Optional[datetime],
    safety_margin_seconds: int,
) -> List[int]:
    """Offsets (seconds after ``started_at``) worth polling at.

    An attempt that would land within ``safety_margin_seconds`` of the
    reservation expiry is dropped, together with every later one.
    """
    planned: List[int] = []
    for offset in sorted(set(offsets)):
        if offset <= 0:
            continue
        if expires_at is not None:
            deadline = expires_at - timedelta(seconds=safety_margin_seconds)
            if started_at + timedelta(seconds=offset) > deadline:
                break
        planned.append(offset)
    return planned


class PixWatcher:
    def __init__(
        self,
        offsets: Optional[Sequence[int]] = None,
        safety_margin_seconds: Optional[int] = None,
    ) -> None:
        self.offsets = list(offsets if offsets is not None else settings.PIX_WATCH_OFFSETS)
        self.safety_margin_seconds = (
            safety_margin_seconds
            if safety_margin_seconds is not None
            else settings.PIX_WATCH_SAFETY_MARGIN_SECONDS
        )

    def start(
        self,
        order_id: int,
        txid: str,
        expires_at: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> List[int]:
        """Schedule the polls and return the planned offsets."""
        started_at = now or timezone.now()
        planned = plan_offsets(
            self.offsets, started_at, expires_at, self.safety_margin_seconds
        )
        for offset in planned:
            poll_pix_status.apply_async(
                args=(order_id, txid),
                eta=started_at + timedelta(seconds=offset),
            )
        logger.info(
            "pix_watcher.scheduled",
            order_id=order_id,
            txid=txid,
            attempts=len(planned),
            last_offset=planned[-1] if planned else None,
        )
        return planned
