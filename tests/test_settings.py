import importlib

import pytest

from modules.payments.gateways import get_card_gateway, get_pix_gateway
from modules.payments.gateways.efi import EfiCardGateway, EfiPixGateway
from modules.payments.gateways.stub import StubCardGateway, StubPixGateway
from modules.payouts.providers import get_payout_provider, settles_synchronously
from modules.payouts.providers.efi import EfiPayoutProvider
from modules.payouts.providers.stub import StubPayoutProvider

MODE_VARS = ("PAYMENTS_GATEWAY_MODE", "PAYOUT_SETTLEMENT_MODE")


@pytest.fixture()
def production_settings(monkeypatch):
    """Re-evaluate config.settings against a controlled environment."""
    import config.settings as production

    for name in MODE_VARS:
        monkeypatch.delenv(name, raising=False)
    yield production, monkeypatch
    for name in MODE_VARS:
        monkeypatch.delenv(name, raising=False)
    importlib.reload(production)


class TestProviderModeDefaults:
    def test_unset_modes_use_real_providers(self, production_settings):
        production, _ = production_settings
        importlib.reload(production)

        assert [production.PAYMENTS_GATEWAY_MODE, production.PAYOUT_SETTLEMENT_MODE] == [
            "efi",
            "efi",
        ]

    def test_stub_is_opt_in(self, production_settings):
        production, monkeypatch = production_settings
        monkeypatch.setenv("PAYMENTS_GATEWAY_MODE", "stub")
        monkeypatch.setenv("PAYOUT_SETTLEMENT_MODE", "stub")
        importlib.reload(production)

        assert production.PAYMENTS_GATEWAY_MODE == "stub"
        assert production.PAYOUT_SETTLEMENT_MODE == "stub"

    @pytest.mark.parametrize("name", MODE_VARS)
    def test_unknown_mode_fails_at_startup(self, production_settings, name):
        production, monkeypatch = production_settings
        monkeypatch.setenv(name, "sandbox")

        with pytest.raises(ValueError):
            importlib.reload(production)


class TestProviderFactories:
    def test_efi_mode(self, settings):
        settings.PAYMENTS_GATEWAY_MODE = "efi"
        settings.PAYOUT_SETTLEMENT_MODE = "efi"

        assert isinstance(get_pix_gateway(), EfiPixGateway)
        assert isinstance(get_card_gateway(), EfiCardGateway)
        assert isinstance(get_payout_provider(), EfiPayoutProvider)
        assert settles_synchronously() is False

    def test_stub_mode(self, settings):
        settings.PAYMENTS_GATEWAY_MODE = "stub"
        settings.PAYOUT_SETTLEMENT_MODE = "stub"

        assert isinstance(get_pix_gateway(), StubPixGateway)
        assert isinstance(get_card_gateway(), StubCardGateway)
        assert isinstance(get_payout_provider(), StubPayoutProvider)
        assert settles_synchronously() is True
