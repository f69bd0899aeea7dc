"""Payout emails to the seller, sent at most once per order and kind."""

from __future__ import annotations

from typing import Optional

import structlog

from modules.notifications.constants import EmailKind
from modules.notifications.services import NotificationService
from modules.orders.models import Order
from modules.payouts.constants import PayoutResultStatus, PayoutStatus
from modules.payouts.models import Payout, Seller
from modules.payouts.services import PayoutResult, mask_key

logger = structlog.get_logger(__name__)


def _seller_email() -> str:
    seller = Seller.active_seller()
    return seller.email if seller is not None else ""


def _payout_context(payout: Optional[Payout], **extra) -> dict:
    context = dict(extra)
    if payout is not None:
        context.update(
            amount_net=payout.amount_net,
            amount_gross=payout.amount_gross,
            pix_key=mask_key(payout.pix_key),
            provider_ref=payout.provider_ref,
            end_to_end_id=payout.end_to_end_id,
        )
    return context


def notify_payout_confirmed(order: Order, note: str = "") -> bool:
    to_email = _seller_email()
    if not to_email:
        logger.info("payout.email_skipped", order_id=order.pk, reason="no_seller_email")
        return False
    payout = Payout.objects.filter(order_id=order.pk).first()
    return NotificationService().send_once(
        EmailKind.PAYOUT_CONFIRMED,
        order,
        to_email,
        _payout_context(payout, note_line=note),
    )


def notify_payout_failed(order: Order, reason: str) -> bool:
    to_email = _seller_email()
    if not to_email:
        logger.info("payout.email_skipped", order_id=order.pk, reason="no_seller_email")
        return False
    payout = Payout.objects.filter(order_id=order.pk).first()
    return NotificationService().send_once(
        EmailKind.PAYOUT_FAILED, order, to_email, _payout_context(payout, reason=reason)
    )


def notify_payout_result(order: Order, result: PayoutResult) -> bool:
    """Email the outcome of a trigger; a payout still SENT waits for its webhook."""
    if result.status == PayoutResultStatus.SUCCESS:
        confirmed = Payout.objects.filter(
            order_id=order.pk, status=PayoutStatus.CONFIRMED
        ).exists()
        return notify_payout_confirmed(order) if confirmed else False
    return notify_payout_failed(order, result.message or result.status)
