"""Efí PIX send (``/v3/gn/pix``) payout provider.

The send is idempotent on the provider side: ``idEnvio`` is derived from
the order id, and a 409 for an ``idEnvio`` already used counts as sent.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional

import structlog
from django.conf import settings

from modules.payments.exceptions import GatewayError
from modules.payments.gateways.efi import EfiAuth, EfiPixGateway
from modules.payouts.exceptions import PayoutProviderError
from modules.payouts.providers.base import PayoutSendStatus

logger = structlog.get_logger(__name__)

SEND_OK_STATUS_CODES = (200, 201, 409)


def provider_ref_for(order_id: int) -> str:
    return f"P{order_id}"


def favored_party(beneficiary_key: str) -> dict:
    favorecido = {"chave": beneficiary_key}
    digits = re.sub(r"\D", "", beneficiary_key)
    if len(digits) == 11 and digits == beneficiary_key:
        favorecido["cpf"] = digits
    elif len(digits) == 14 and digits == beneficiary_key:
        favorecido["cnpj"] = digits
    return favorecido


class EfiPayoutProvider(EfiPixGateway):
    def __init__(self, auth: Optional[EfiAuth] = None) -> None:
        super().__init__(auth)

    def send_payout(self, order_id: int, amount: Decimal, beneficiary_key: str) -> str:
        id_envio = provider_ref_for(order_id)
        body = {
            "valor": f"{amount:.2f}",
            "pagador": {
                "chave": settings.EFI_PIX_KEY,
                "infoPagador": f"Repasse pedido {id_envio}",
            },
            "favorecido": favored_party(beneficiary_key),
        }
        try:
            response = self._request("PUT", f"/v3/gn/pix/{id_envio}", reference=id_envio, json=body)
        except GatewayError as exc:
            raise PayoutProviderError(str(exc), reference=id_envio) from exc

        if response.status_code not in SEND_OK_STATUS_CODES:
            raise PayoutProviderError(
                f"Efí PIX send HTTP {response.status_code}",
                status_code=response.status_code,
                reference=id_envio,
                body=response.text,
            )
        logger.info(
            "payout.provider_sent",
            provider_ref=id_envio,
            status_code=response.status_code,
        )
        return id_envio

    def get_send_status(self, provider_ref: str) -> PayoutSendStatus:
        response = self._request("GET", f"/v3/gn/pix/{provider_ref}", reference=provider_ref)
        self._raise_for_status(response, provider_ref)
        data = self._json(response, provider_ref)
        horario = data.get("horario") or {}
        return PayoutSendStatus(
            provider_ref=provider_ref,
            status=str(data.get("status") or "EM_PROCESSAMENTO").upper(),
            end_to_end_id=data.get("e2eId") or data.get("endToEndId"),
            txid=data.get("txid"),
            settled_at=horario.get("efetivacao") if isinstance(horario, dict) else None,
        )
