"""In-process gateways."""

from decimal import Decimal

import pytest

from modules.payments.gateways.base import CardChargeRequest
from modules.payments.gateways.stub import StubCardGateway, StubPixGateway

pytestmark = pytest.mark.unit


def _card_request(token):
    return CardChargeRequest(
        order_id=1,
        amount=Decimal("10.00"),
        payment_token=token,
        installments=1,
        customer={},
        billing_address={},
        items=[],
    )


def test_pix_collection_lifecycle():
    gateway = StubPixGateway()
    collection = gateway.create_collection("tx1", Decimal("12.50"), "Pedido 1", 300)
    assert collection.txid == "tx1"
    assert collection.qr_code
    assert gateway.get_status("tx1") == "ATIVA"

    StubPixGateway.mark_paid("tx1")
    assert gateway.get_status("tx1") == "CONCLUIDA"

    assert gateway.cancel("tx1") is True
    assert gateway.get_status("tx1") == "REMOVIDA_PELO_USUARIO_RECEBEDOR"


@pytest.mark.parametrize(
    "token,expected", [("tok", "paid"), ("decline-1", "unpaid"), ("waiting-x", "waiting")]
)
def test_card_status_follows_token(token, expected):
    gateway = StubCardGateway()
    charge = gateway.create_charge(_card_request(token))
    assert charge.status == expected
    assert gateway.get_status(charge.charge_id) == expected
