"""Unit tests for PayoutTriggerService.try_trigger."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from modules.payments.exceptions import GatewayError
from modules.payouts.calculator import PayoutParameters
from modules.payouts.constants import PayoutResultStatus, PayoutStatus
from modules.payouts.models import Payout
from modules.payouts.services import PayoutTriggerService, mask_key, parse_order_ref

pytestmark = pytest.mark.unit


def _params(**overrides) -> PayoutParameters:
    values = {
        "fee_percent": Decimal("2"),
        "fee_fixed": Decimal("0.50"),
        "margin_percent": Decimal("5"),
        "margin_fixed": Decimal("0"),
        "include_gateway_fees": True,
        "min_send": Decimal("1.20"),
    }
    values.update(overrides)
    return PayoutParameters(**values)


@pytest.fixture()
def provider():
    mock = MagicMock()
    mock.send_payout.return_value = "P1ABC"
    return mock


@pytest.fixture()
def paid_order(make_order):
    return make_order(total=Decimal("100.00"))


def _service(provider, synchronous=True, **params) -> PayoutTriggerService:
    return PayoutTriggerService(
        provider=provider,
        parameters=_params(**params),
        synchronous_settlement=synchronous,
    )


class TestTryTrigger:
    def test_sends_net_amount_and_confirms_synchronously(self, paid_order, seller, provider):
        result = _service(provider).try_trigger(str(paid_order.pk), "tx-1", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.SUCCESS
        assert result.amount_gross == Decimal("100.00")
        assert result.amount_net == Decimal("92.50")
        provider.send_payout.assert_called_once_with(
            paid_order.pk, Decimal("92.50"), seller.pix_key
        )
        payout = Payout.objects.get(order=paid_order)
        assert payout.status == PayoutStatus.CONFIRMED
        assert payout.provider_ref == "P1ABC"
        assert payout.fee_percent == Decimal("2")
        assert payout.confirmed_at is not None

    def test_asynchronous_settlement_leaves_payout_sent(self, paid_order, seller, provider):
        result = _service(provider, synchronous=False).try_trigger(
            paid_order.pk, "tx-1", "PIX-WEBHOOK"
        )

        assert result.status == PayoutResultStatus.SUCCESS
        assert result.message == "Enviado ao provedor; aguardando confirmação"
        assert Payout.objects.get(order=paid_order).status == PayoutStatus.SENT

    def test_below_minimum_fails_without_calling_provider(self, make_order, seller, provider):
        order = make_order(total=Decimal("0.60"))
        result = _service(provider, fee_percent=Decimal("0"), fee_fixed=Decimal("0"),
                          margin_percent=Decimal("0"), margin_fixed=Decimal("0.10")).try_trigger(
            order.pk, "tx-1", "PIX-WEBHOOK"
        )

        assert result.status == PayoutResultStatus.FAILED
        assert result.amount_net == Decimal("0.50")
        assert "mínimo" in result.message
        provider.send_payout.assert_not_called()
        payout = Payout.objects.get(order=order)
        assert payout.status == PayoutStatus.FAILED
        assert "mínimo" in payout.fail_reason

    def test_provider_error_marks_failed(self, paid_order, seller, provider):
        provider.send_payout.side_effect = GatewayError("timeout", status_code=504)

        result = _service(provider).try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.FAILED
        assert result.message.startswith("Envio PIX falhou")
        assert Payout.objects.get(order=paid_order).status == PayoutStatus.FAILED

    def test_malformed_provider_ref_marks_failed(self, paid_order, seller, provider):
        provider.send_payout.return_value = "bad-ref!"

        result = _service(provider).try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.FAILED
        assert "formato inválido" in result.message
        assert Payout.objects.get(order=paid_order).status == PayoutStatus.FAILED

    @pytest.mark.parametrize("order_ref", [None, "", "abc", "0", "-3"])
    def test_invalid_order_ref_is_an_error_without_side_effects(self, order_ref, provider):
        result = _service(provider).try_trigger(order_ref, "tx-9", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.ERROR
        assert result.order_id is None
        assert "tx=tx-9" in result.message
        assert Payout.objects.count() == 0
        provider.send_payout.assert_not_called()

    def test_unknown_order_is_an_error(self, provider):
        result = _service(provider).try_trigger("999999", "tx-1", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.ERROR
        assert result.message == "Pedido não encontrado"

    def test_no_beneficiary_aborts(self, paid_order, provider, settings):
        settings.PAYOUT_FAVORED_KEY = ""

        result = _service(provider).try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")

        assert result.status == PayoutResultStatus.ERROR
        assert Payout.objects.count() == 0
        provider.send_payout.assert_not_called()

    def test_second_trigger_does_not_send_again(self, paid_order, seller, provider):
        service = _service(provider)
        service.try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")
        again = service.try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")

        assert again.status == PayoutResultStatus.SUCCESS
        assert again.message == "Repasse já enviado"
        assert provider.send_payout.call_count == 1
        assert Payout.objects.filter(order=paid_order).count() == 1

    def test_failed_payout_can_be_retried(self, paid_order, seller, provider):
        provider.send_payout.side_effect = [GatewayError("down"), "P2RETRY"]
        service = _service(provider)

        first = service.try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")
        second = service.try_trigger(paid_order.pk, "manual-1", "MANUAL")

        assert first.status == PayoutResultStatus.FAILED
        assert second.status == PayoutResultStatus.SUCCESS
        payout = Payout.objects.get(order=paid_order)
        assert payout.status == PayoutStatus.CONFIRMED
        assert payout.provider_ref == "P2RETRY"
        assert payout.fail_reason == ""


class TestBeneficiaryResolution:
    def test_override_wins(self, seller, settings):
        settings.PAYOUT_FAVORED_KEY = "fixed-key"
        assert PayoutTriggerService().resolve_beneficiary_key(" override ") == "override"

    def test_configured_key_before_seller(self, seller, settings):
        settings.PAYOUT_FAVORED_KEY = "fixed-key"
        assert PayoutTriggerService().resolve_beneficiary_key() == "fixed-key"

    def test_active_seller_is_the_fallback(self, seller, settings):
        settings.PAYOUT_FAVORED_KEY = ""
        assert PayoutTriggerService().resolve_beneficiary_key() == seller.pix_key

    def test_inactive_seller_is_ignored(self, seller, settings):
        settings.PAYOUT_FAVORED_KEY = ""
        seller.active = False
        seller.save()
        assert PayoutTriggerService().resolve_beneficiary_key() == ""


class TestHelpers:
    def test_mask_key(self):
        assert mask_key("autor@example.com") == "aut***com"
        assert mask_key("12345") == "***"
        assert mask_key("") == ""

    def test_parse_order_ref(self):
        assert parse_order_ref(" 42 ") == 42
        assert parse_order_ref(42) == 42
        assert parse_order_ref("4x") is None

    def test_result_to_dict_masks_key(self, paid_order, seller, provider):
        result = _service(provider).try_trigger(paid_order.pk, "tx-1", "PIX-WEBHOOK")
        data = result.to_dict()
        assert data["amount_net"] == "92.50"
        assert data["pix_key"] == "aut***com"
