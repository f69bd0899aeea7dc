"""Payout status reconciliation.

The provider reports the outcome of a send asynchronously, keyed by
``idEnvio``.  REALIZADO confirms the payout, NAO_REALIZADO fails it; any
other status is ignored.  Both transitions go through the guarded
repository writes, so a duplicate notification changes nothing and the
email gate keeps it from mailing twice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from modules.orders.models import Order
from modules.payments.exceptions import GatewayError
from modules.payouts.constants import (
    PAYOUT_CONFIRMED_STATUSES,
    PAYOUT_FAILED_STATUSES,
    PROVIDER_REF_PREFIXES,
    PayoutStatus,
)
from modules.payouts.notifier import notify_payout_confirmed, notify_payout_failed
from modules.payouts.providers import PayoutProvider, PayoutSendStatus, get_payout_provider
from modules.payouts.repositories import IPayoutRepository, PayoutDjangoRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PayoutNotice:
    provider_ref: str
    status: str
    end_to_end_id: Optional[str] = None
    txid: Optional[str] = None


def order_id_from_provider_ref(provider_ref: str) -> Optional[int]:
    """``P123``, ``payout-123`` and bare ``123`` all resolve to 123."""
    ref = (provider_ref or "").strip()
    for prefix in PROVIDER_REF_PREFIXES:
        if ref.startswith(prefix):
            ref = ref[len(prefix):]
            break
    return int(ref) if ref.isdigit() and int(ref) > 0 else None


def _first(*values: Any) -> str:
    for value in values:
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def parse_payout_notice(payload: Dict[str, Any]) -> Optional[PayoutNotice]:
    sources = [payload]
    pix = payload.get("pix")
    if isinstance(pix, list) and pix and isinstance(pix[0], dict):
        sources.append(pix[0])
    for source in list(sources):
        extras = source.get("gnExtras")
        if isinstance(extras, dict):
            sources.append(extras)

    ref = _first(*(s.get("idEnvio") or s.get("id_envio") for s in sources))
    if not ref:
        return None
    return PayoutNotice(
        provider_ref=ref,
        status=_first(*(s.get("status") or s.get("situacao") for s in sources)).upper(),
        end_to_end_id=_first(*(s.get("endToEndId") or s.get("e2eId") for s in sources)) or None,
        txid=_first(*(s.get("txid") for s in sources)) or None,
    )


class PayoutStatusReconciler:
    def __init__(
        self,
        repository: Optional[IPayoutRepository] = None,
        provider: Optional[PayoutProvider] = None,
    ) -> None:
        self._repo = repository or PayoutDjangoRepository()
        self._provider = provider

    def handle_webhook(self, payload: Dict[str, Any]) -> bool:
        """Apply a payout notification; ``True`` if the payout row changed."""
        notice = parse_payout_notice(payload)
        if notice is None:
            logger.warning("payout.webhook_without_id_envio")
            return False

        order_id = order_id_from_provider_ref(notice.provider_ref)
        if order_id is None:
            logger.warning("payout.webhook_unknown_ref", provider_ref=notice.provider_ref)
            return False
        return self.apply(order_id, notice.status, notice.end_to_end_id, source="webhook")

    def apply(
        self,
        order_id: int,
        status: str,
        end_to_end_id: Optional[str] = None,
        source: str = "webhook",
    ) -> bool:
        status = (status or "").strip().upper()
        log = logger.bind(order_id=order_id, provider_status=status, source=source)
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            log.warning("payout.reconcile_order_not_found")
            return False

        if status in PAYOUT_CONFIRMED_STATUSES:
            changed = self._repo.mark_confirmed(order_id, end_to_end_id=end_to_end_id)
            payout = self._repo.get_by_order(order_id)
            if payout is not None and payout.status == PayoutStatus.CONFIRMED:
                notify_payout_confirmed(order, note=f"Confirmação recebida via {source}.")
            log.info("payout.reconciled_confirmed", changed=changed)
            return changed

        if status in PAYOUT_FAILED_STATUSES:
            changed = self._repo.mark_failed(order_id, "NAO_REALIZADO")
            if changed:
                notify_payout_failed(order, "NAO_REALIZADO")
            log.warning("payout.reconciled_failed", changed=changed)
            return changed

        log.info("payout.reconcile_ignored")
        return False

    def refresh(self, order_id: int) -> Optional[PayoutSendStatus]:
        """Pull the send status from the provider and apply it."""
        payout = self._repo.get_by_order(order_id)
        if payout is None or not payout.provider_ref:
            logger.info("payout.refresh_skipped", order_id=order_id)
            return None
        provider = self._provider or get_payout_provider()
        try:
            send_status = provider.get_send_status(payout.provider_ref)
        except GatewayError as exc:
            logger.warning(
                "payout.refresh_failed", order_id=order_id, error=str(exc)
            )
            return None
        self.apply(order_id, send_status.status, send_status.end_to_end_id, source="status")
        return send_status
