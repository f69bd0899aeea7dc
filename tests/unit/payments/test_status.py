"""Provider status normalization."""

import pytest

from modules.orders.constants import OrderStatus, PaymentMethod
from modules.payments.status import is_paid_status, map_provider_status

pytestmark = pytest.mark.unit


class TestIsPaidStatus:
    @pytest.mark.parametrize(
        "raw", ["CONCLUIDA", "concluida", " Concluída ", "LIQUIDADO", "ATIVA-RECEBIDA", "paid"]
    )
    def test_pix_paid_tokens(self, raw):
        assert is_paid_status(raw, PaymentMethod.PIX) is True

    @pytest.mark.parametrize("raw", ["paid", "APPROVED", "captured", "Confirmed"])
    def test_card_paid_tokens(self, raw):
        assert is_paid_status(raw, PaymentMethod.CARD) is True

    @pytest.mark.parametrize("raw", [None, "", "ATIVA", "waiting", "REMOVIDA_PELO_PSP"])
    def test_non_paid(self, raw):
        assert is_paid_status(raw, PaymentMethod.PIX) is False

    def test_pix_only_token_is_not_a_card_payment(self):
        assert is_paid_status("CONCLUIDA", PaymentMethod.CARD) is False


class TestMapProviderStatus:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("REMOVIDA_PELO_USUARIO_RECEBEDOR", OrderStatus.CANCELED),
            ("devolvida", OrderStatus.REFUNDED),
            ("unpaid", OrderStatus.UNPAID),
            ("declined", OrderStatus.DECLINED),
            ("Canceled", OrderStatus.CANCELED),
        ],
    )
    def test_known(self, raw, expected):
        assert map_provider_status(raw) == expected

    def test_unknown(self):
        assert map_provider_status("something-else") is None
        assert map_provider_status(None) is None
