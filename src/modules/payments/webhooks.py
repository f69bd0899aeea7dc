"""Inbound payment webhook processing.

Every body is audited once in ``WebhookEvent`` before being acted on.
Providers retry aggressively on non-2xx, so nothing here raises for a
body it could read: unparseable JSON is audited as INVALID_JSON and
acknowledged.

PIX bodies come either as ``{"pix": [{"txid", "status", ...}]}`` or
with ``txid``/``status`` at the root.  A PIX entry with an
``endToEndId`` but no status is a received payment.  Bodies carrying an
``idEnvio`` and no ``txid`` are payout (send) notifications and go to the
payout reconciler.

Card bodies are ``{"data": {"charge_id", "status"}}``; ``status`` may
also be an object with a ``current`` key.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog

from modules.orders.constants import PaymentMethod, StatusSource
from modules.payments.confirmation import PaymentConfirmationService
from modules.payments.constants import WebhookProcessingStatus, WebhookProvider
from modules.payments.models import WebhookEvent

logger = structlog.get_logger(__name__)

PIX_RECEIVED_STATUS = "CONCLUIDA"


@dataclass(frozen=True)
class WebhookNotice:
    reference: str
    status: str


@dataclass
class WebhookAck:
    """Body returned to the provider (always with HTTP 200)."""

    ok: bool = True
    processing_status: str = WebhookProcessingStatus.RECEIVED
    handled: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "processing_status": self.processing_status,
            "handled": self.handled,
        }


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def decode_body(body: bytes | str) -> Optional[Any]:
    """Parsed JSON, or ``None`` if the body is not valid JSON."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def payout_reference(payload: Dict[str, Any]) -> Optional[str]:
    """``idEnvio`` of a payout notification, if this body is one."""
    candidates: List[Dict[str, Any]] = [payload]
    pix = payload.get("pix")
    if isinstance(pix, list) and pix and isinstance(pix[0], dict):
        candidates.append(pix[0])
        extras = pix[0].get("gnExtras")
        if isinstance(extras, dict):
            candidates.append(extras)
    extras = payload.get("gnExtras")
    if isinstance(extras, dict):
        candidates.append(extras)

    for candidate in candidates:
        if _text(candidate.get("txid")):
            return None
        id_envio = _text(candidate.get("idEnvio") or candidate.get("id_envio"))
        if id_envio:
            return id_envio
    return None


def parse_pix_notices(payload: Dict[str, Any]) -> List[WebhookNotice]:
    entries = payload.get("pix")
    if not isinstance(entries, list):
        entries = [payload]

    notices: List[WebhookNotice] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        txid = _text(entry.get("txid"))
        if not txid:
            continue
        status = _text(entry.get("status"))
        if not status and _text(entry.get("endToEndId")):
            status = PIX_RECEIVED_STATUS
        notices.append(WebhookNotice(reference=txid, status=status))
    return notices


def parse_card_notice(payload: Dict[str, Any]) -> Optional[WebhookNotice]:
    data = payload.get("data")
    if not isinstance(data, dict):
        data = payload
    charge_id = _text(data.get("charge_id"))
    if not charge_id:
        return None
    status = data.get("status")
    if isinstance(status, dict):
        status = status.get("current")
    return WebhookNotice(reference=charge_id, status=_text(status))


class PaymentWebhookProcessor:
    def __init__(self, confirmation: Optional[PaymentConfirmationService] = None) -> None:
        self._confirmation = confirmation or PaymentConfirmationService()

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    @staticmethod
    def _audit(
        provider: str,
        raw: str,
        processing_status: str,
        path: str = "",
        reference: str = "",
        status: str = "",
    ) -> WebhookEvent:
        return WebhookEvent.objects.create(
            provider=provider,
            reference=reference[:64],
            status=status[:50],
            raw_body=raw,
            path=path[:255],
            processing_status=processing_status,
        )

    @staticmethod
    def _raw(body: bytes | str) -> str:
        if isinstance(body, bytes):
            return body.decode("utf-8", errors="replace")
        return body

    def _invalid(self, provider: str, raw: str, path: str) -> WebhookAck:
        self._audit(provider, raw, WebhookProcessingStatus.INVALID_JSON, path)
        logger.warning("webhook.invalid_json", provider=provider, path=path, size=len(raw))
        return WebhookAck(processing_status=WebhookProcessingStatus.INVALID_JSON)

    # ------------------------------------------------------------------
    # PIX
    # ------------------------------------------------------------------

    def handle_pix(self, body: bytes | str, path: str = "") -> WebhookAck:
        raw = self._raw(body)
        payload = decode_body(raw)
        if not isinstance(payload, dict):
            return self._invalid(WebhookProvider.PIX, raw, path)

        id_envio = payout_reference(payload)
        if id_envio:
            from modules.payouts.reconciliation import PayoutStatusReconciler

            self._audit(
                WebhookProvider.PAYOUT,
                raw,
                WebhookProcessingStatus.RECEIVED,
                path,
                reference=id_envio,
            )
            handled = PayoutStatusReconciler().handle_webhook(payload)
            return WebhookAck(handled=[id_envio] if handled else [])

        notices = parse_pix_notices(payload)
        if not notices:
            self._audit(WebhookProvider.PIX, raw, WebhookProcessingStatus.IGNORED, path)
            logger.info("webhook.ignored", provider=WebhookProvider.PIX, reason="no_txid")
            return WebhookAck(processing_status=WebhookProcessingStatus.IGNORED)

        for notice in notices:
            self._audit(
                WebhookProvider.PIX,
                raw,
                WebhookProcessingStatus.RECEIVED,
                path,
                reference=notice.reference,
                status=notice.status,
            )

        ack = WebhookAck()
        for notice in notices:
            result = self._confirmation.handle_status(
                notice.reference, notice.status, PaymentMethod.PIX, StatusSource.WEBHOOK
            )
            logger.info(
                "webhook.pix_processed",
                txid=notice.reference,
                status=notice.status,
                outcome=result.outcome.value if result.outcome else None,
                applied_status=result.applied_status,
            )
            if result.changed:
                ack.handled.append(notice.reference)
        return ack

    # ------------------------------------------------------------------
    # Card
    # ------------------------------------------------------------------

    def handle_card(self, body: bytes | str, path: str = "") -> WebhookAck:
        raw = self._raw(body)
        payload = decode_body(raw)
        if not isinstance(payload, dict):
            return self._invalid(WebhookProvider.CARD, raw, path)

        notice = parse_card_notice(payload)
        if notice is None:
            self._audit(WebhookProvider.CARD, raw, WebhookProcessingStatus.IGNORED, path)
            logger.info("webhook.ignored", provider=WebhookProvider.CARD, reason="no_charge_id")
            return WebhookAck(processing_status=WebhookProcessingStatus.IGNORED)

        self._audit(
            WebhookProvider.CARD,
            raw,
            WebhookProcessingStatus.RECEIVED,
            path,
            reference=notice.reference,
            status=notice.status,
        )
        result = self._confirmation.handle_status(
            notice.reference, notice.status, PaymentMethod.CARD, StatusSource.WEBHOOK
        )
        logger.info(
            "webhook.card_processed",
            charge_id=notice.reference,
            status=notice.status,
            outcome=result.outcome.value if result.outcome else None,
            applied_status=result.applied_status,
        )
        return WebhookAck(handled=[notice.reference] if result.changed else [])

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    def handle_payout(self, body: bytes | str, path: str = "") -> WebhookAck:
        from modules.payouts.reconciliation import PayoutStatusReconciler, parse_payout_notice

        raw = self._raw(body)
        payload = decode_body(raw)
        if not isinstance(payload, dict):
            return self._invalid(WebhookProvider.PAYOUT, raw, path)

        notice = parse_payout_notice(payload)
        reference = notice.provider_ref if notice is not None else ""
        self._audit(
            WebhookProvider.PAYOUT,
            raw,
            WebhookProcessingStatus.RECEIVED if reference else WebhookProcessingStatus.IGNORED,
            path,
            reference=reference,
        )
        handled = PayoutStatusReconciler().handle_webhook(payload)
        return WebhookAck(handled=[reference] if handled else [])
