"""Payout trigger (settlement engine).

``PayoutTriggerService.try_trigger`` computes and sends the net proceeds
of a paid order to the beneficiary, at most once:

1. Validate the order reference (ERROR, no side effects, if malformed).
2. Read the gross total from ``Order.total``.
3. Compute fee, margin and net (``calculator.compute_breakdown``).
4. Resolve the beneficiary key: override > ``PAYOUT_FAVORED_KEY`` >
   active seller's key (ERROR if none).
5. Upsert the payout row to CREATED (never downgrading SENT/CONFIRMED).
6. Net below the effective minimum -> FAILED, provider not called.
7. Send through the payout provider (FAILED on provider error).
8. Validate the provider reference format (FAILED if malformed).
9. Mark SENT (only from CREATED/FAILED).
10. Synchronous settlement modes confirm immediately.
11. Return a ``PayoutResult``.

A payout that already reached SENT or CONFIRMED short-circuits after
step 5 and reports SUCCESS without calling the provider again.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from django.conf import settings

from modules.orders.models import Order
from modules.payments.exceptions import GatewayError
from modules.payouts.calculator import PayoutParameters, breakdown_for
from modules.payouts.constants import (
    PROVIDER_REF_PATTERN,
    PayoutResultStatus,
    PayoutStatus,
)
from modules.payouts.models import Seller
from modules.payouts.providers import (
    PayoutProvider,
    get_payout_provider,
    settles_synchronously,
)
from modules.payouts.repositories import IPayoutRepository, PayoutDjangoRepository

logger = structlog.get_logger(__name__)


def mask_key(key: Optional[str]) -> str:
    """``abc***xyz`` for logs; short keys are fully masked."""
    if not key:
        return ""
    if len(key) <= 6:
        return "***"
    return f"{key[:3]}***{key[-3:]}"


def _fmt(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else f"{value:.2f}"


@dataclass(frozen=True)
class PayoutResult:
    order_id: Optional[int]
    status: str
    message: Optional[str] = None
    amount_gross: Optional[Decimal] = None
    amount_net: Optional[Decimal] = None
    min_send: Optional[Decimal] = None
    pix_key: Optional[str] = None
    provider_ref: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == PayoutResultStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "status": self.status,
            "message": self.message,
            "amount_gross": _fmt(self.amount_gross),
            "amount_net": _fmt(self.amount_net),
            "min_send": _fmt(self.min_send),
            "pix_key": mask_key(self.pix_key) or None,
            "provider_ref": self.provider_ref,
        }


def parse_order_ref(order_ref: Any) -> Optional[int]:
    try:
        order_id = int(str(order_ref).strip())
    except (TypeError, ValueError):
        return None
    return order_id if order_id > 0 else None


class PayoutTriggerService:
    def __init__(
        self,
        repository: Optional[IPayoutRepository] = None,
        provider: Optional[PayoutProvider] = None,
        parameters: Optional[PayoutParameters] = None,
        synchronous_settlement: Optional[bool] = None,
    ) -> None:
        self._repo = repository or PayoutDjangoRepository()
        self._provider = provider
        self._params = parameters
        self._synchronous = synchronous_settlement

    @property
    def provider(self) -> PayoutProvider:
        if self._provider is None:
            self._provider = get_payout_provider()
        return self._provider

    @property
    def parameters(self) -> PayoutParameters:
        return self._params or PayoutParameters.from_settings()

    @property
    def synchronous_settlement(self) -> bool:
        if self._synchronous is None:
            return settles_synchronously()
        return self._synchronous

    def resolve_beneficiary_key(self, override: Optional[str] = None) -> str:
        for candidate in (override, settings.PAYOUT_FAVORED_KEY):
            if candidate and candidate.strip():
                return candidate.strip()
        seller = Seller.active_seller()
        if seller is not None and seller.pix_key.strip():
            return seller.pix_key.strip()
        return ""

    def try_trigger(
        self,
        order_ref: Any,
        external_id: str,
        source: str,
        override_pix_key: Optional[str] = None,
    ) -> PayoutResult:
        order_id = parse_order_ref(order_ref)
        log = logger.bind(order_ref=order_ref, external_id=external_id, source=source)
        if order_id is None:
            message = f"orderRef inválido ou nulo; tx={external_id}"
            log.warning("payout.invalid_order_ref")
            return PayoutResult(None, PayoutResultStatus.ERROR, message)

        log = log.bind(order_id=order_id)
        gross = Order.objects.filter(pk=order_id).values_list("total", flat=True).first()
        if gross is None:
            log.warning("payout.order_not_found")
            return PayoutResult(order_id, PayoutResultStatus.ERROR, "Pedido não encontrado")

        params = self.parameters
        breakdown = breakdown_for(gross, params)
        min_send = params.effective_min_send
        log.info(
            "payout.computed",
            gross=_fmt(breakdown.gross),
            fee=_fmt(breakdown.fee),
            margin=_fmt(breakdown.margin),
            net=_fmt(breakdown.net),
            min_send=_fmt(min_send),
            clamped=breakdown.clamped,
        )

        def result(status: str, message: Optional[str] = None, **extra) -> PayoutResult:
            return PayoutResult(
                order_id,
                status,
                message,
                amount_gross=breakdown.gross,
                amount_net=breakdown.net,
                min_send=min_send,
                **extra,
            )

        pix_key = self.resolve_beneficiary_key(override_pix_key)
        if not pix_key:
            message = "Sem PAYOUT_FAVORED_KEY e sem vendedor ativo com pix_key; repasse abortado"
            log.warning("payout.no_beneficiary")
            return result(PayoutResultStatus.ERROR, message)
        log = log.bind(pix_key=mask_key(pix_key))

        written = self._repo.upsert_created(
            order_id,
            {
                "amount_gross": breakdown.gross,
                "amount_net": breakdown.net,
                "include_gateway_fees": params.include_gateway_fees,
                "fee_percent": params.fee_percent,
                "fee_fixed": params.fee_fixed,
                "margin_percent": params.margin_percent,
                "margin_fixed": params.margin_fixed,
                "min_send": min_send,
                "pix_key": pix_key,
                "source": source[:30],
            },
        )
        if not written:
            existing = self._repo.get_by_order(order_id)
            if existing is not None and existing.status in (
                PayoutStatus.SENT,
                PayoutStatus.CONFIRMED,
            ):
                log.info("payout.already_progressed", payout_status=existing.status)
                return PayoutResult(
                    order_id,
                    PayoutResultStatus.SUCCESS,
                    "Repasse já enviado",
                    amount_gross=existing.amount_gross,
                    amount_net=existing.amount_net,
                    min_send=existing.min_send,
                    pix_key=existing.pix_key,
                    provider_ref=existing.provider_ref or None,
                )

        if breakdown.net < min_send:
            reason = f"Valor líquido {_fmt(breakdown.net)} abaixo do mínimo {_fmt(min_send)}"
            self._repo.mark_failed(order_id, reason)
            log.warning("payout.below_minimum", reason=reason)
            return result(PayoutResultStatus.FAILED, reason, pix_key=pix_key)

        try:
            provider_ref = self.provider.send_payout(order_id, breakdown.net, pix_key)
        except GatewayError as exc:
            reason = f"Envio PIX falhou: {exc}"
            self._repo.mark_failed(order_id, reason)
            log.error("payout.send_failed", error=str(exc), status_code=exc.status_code)
            return result(PayoutResultStatus.FAILED, reason, pix_key=pix_key)

        if not provider_ref or not PROVIDER_REF_PATTERN.match(provider_ref):
            reason = (
                f"providerRef '{provider_ref}' possui formato inválido "
                "(esperado: alfanumérico até 35 chars)"
            )
            self._repo.mark_failed(order_id, reason)
            log.warning("payout.invalid_provider_ref", provider_ref=provider_ref)
            return result(PayoutResultStatus.FAILED, reason, pix_key=pix_key)

        self._repo.mark_sent(order_id, provider_ref)
        log = log.bind(provider_ref=provider_ref)

        if self.synchronous_settlement:
            self._repo.mark_confirmed(order_id)
            log.info("payout.confirmed", mode="synchronous", net=_fmt(breakdown.net))
            return result(
                PayoutResultStatus.SUCCESS, pix_key=pix_key, provider_ref=provider_ref
            )

        log.info("payout.sent", net=_fmt(breakdown.net))
        return result(
            PayoutResultStatus.SUCCESS,
            "Enviado ao provedor; aguardando confirmação",
            pix_key=pix_key,
            provider_ref=provider_ref,
        )
