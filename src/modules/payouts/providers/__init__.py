from django.conf import settings

from modules.payouts.constants import SettlementMode
from modules.payouts.providers.base import PayoutProvider, PayoutSendStatus


def get_payout_provider() -> PayoutProvider:
    if settings.PAYOUT_SETTLEMENT_MODE == SettlementMode.STUB:
        from modules.payouts.providers.stub import StubPayoutProvider

        return StubPayoutProvider()
    from modules.payouts.providers.efi import EfiPayoutProvider

    return EfiPayoutProvider()


def settles_synchronously() -> bool:
    return settings.PAYOUT_SETTLEMENT_MODE == SettlementMode.STUB


__all__ = [
    "PayoutProvider",
    "PayoutSendStatus",
    "get_payout_provider",
    "settles_synchronously",
]
