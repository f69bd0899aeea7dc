"""In-process gateways for local development and tests.

Collections are kept in a class-level registry so a test can flip a
reference to paid and let the watcher or sweep observe it.
"""

from __future__ import annotations

import base64
import threading
import uuid
from decimal import Decimal
from typing import Dict

import structlog

from modules.payments.gateways.base import CardCharge, CardChargeRequest, PixCollection

logger = structlog.get_logger(__name__)


class _Registry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._statuses: Dict[str, str] = {}

    def set(self, reference: str, status: str) -> None:
        with self._lock:
            self._statuses[reference] = status

    def get(self, reference: str, default: str) -> str:
        with self._lock:
            return self._statuses.get(reference, default)

    def clear(self) -> None:
        with self._lock:
            self._statuses.clear()


class StubPixGateway:
    registry = _Registry()

    def create_collection(
        self, txid: str, amount: Decimal, description: str, ttl_seconds: int
    ) -> PixCollection:
        payload = f"00020126STUB{txid}5204000053039865406{amount:.2f}6304"
        self.registry.set(txid, "ATIVA")
        logger.info("gateway.stub_pix_created", txid=txid, amount=str(amount))
        return PixCollection(
            txid=txid,
            qr_code=payload,
            qr_code_base64=base64.b64encode(payload.encode()).decode(),
        )

    def get_status(self, txid: str) -> str:
        return self.registry.get(txid, "ATIVA")

    def cancel(self, txid: str) -> bool:
        self.registry.set(txid, "REMOVIDA_PELO_USUARIO_RECEBEDOR")
        return True

    @classmethod
    def mark_paid(cls, txid: str) -> None:
        cls.registry.set(txid, "CONCLUIDA")


class StubCardGateway:
    """Approves every charge immediately unless the token says otherwise.

    ``payment_token`` values starting with ``waiting`` leave the charge in
    analysis and ``decline`` refuses it.
    """

    registry = _Registry()

    def create_charge(self, request: CardChargeRequest) -> CardCharge:
        charge_id = uuid.uuid4().hex[:12]
        token = request.payment_token.lower()
        if token.startswith("decline"):
            status = "unpaid"
        elif token.startswith("waiting"):
            status = "waiting"
        else:
            status = "paid"
        self.registry.set(charge_id, status)
        logger.info(
            "gateway.stub_card_created",
            order_id=request.order_id,
            charge_id=charge_id,
            status=status,
        )
        return CardCharge(charge_id=charge_id, status=status)

    def get_status(self, charge_id: str) -> str:
        return self.registry.get(charge_id, "waiting")

    def cancel(self, charge_id: str) -> bool:
        self.registry.set(charge_id, "canceled")
        return True
