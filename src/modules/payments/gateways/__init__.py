from django.conf import settings

from modules.payments.gateways.base import (
    CardCharge,
    CardChargeRequest,
    CardGateway,
    PixCollection,
    PixGateway,
)


def get_pix_gateway() -> PixGateway:
    if settings.PAYMENTS_GATEWAY_MODE == "stub":
        from modules.payments.gateways.stub import StubPixGateway

        return StubPixGateway()
    from modules.payments.gateways.efi import EfiPixGateway

    return EfiPixGateway()


def get_card_gateway() -> CardGateway:
    if settings.PAYMENTS_GATEWAY_MODE == "stub":
        from modules.payments.gateways.stub import StubCardGateway

        return StubCardGateway()
    from modules.payments.gateways.efi import EfiCardGateway

    return EfiCardGateway()


__all__ = [
    "CardCharge",
    "CardChargeRequest",
    "CardGateway",
    "PixCollection",
    "PixGateway",
    "get_card_gateway",
    "get_pix_gateway",
]
