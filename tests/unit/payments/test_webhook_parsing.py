"""Webhook body parsing and route normalization."""

import pytest

from modules.payments.views import canonical_webhook_route
from modules.payments.webhooks import (
    WebhookNotice,
    decode_body,
    parse_card_notice,
    parse_pix_notices,
    payout_reference,
)

pytestmark = pytest.mark.unit


class TestDecodeBody:
    def test_valid_json_bytes(self):
        assert decode_body(b'{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("body", [b"", b"   ", b"{not json", "nope"])
    def test_invalid_returns_none(self, body):
        assert decode_body(body) is None


class TestParsePixNotices:
    def test_pix_array(self):
        payload = {
            "pix": [
                {"txid": "tx1", "status": "CONCLUIDA"},
                {"txid": "tx2", "endToEndId": "E123"},
                {"status": "CONCLUIDA"},
            ]
        }
        assert parse_pix_notices(payload) == [
            WebhookNotice("tx1", "CONCLUIDA"),
            WebhookNotice("tx2", "CONCLUIDA"),
        ]

    def test_root_level_fields(self):
        assert parse_pix_notices({"txid": " tx9 ", "status": "ATIVA"}) == [
            WebhookNotice("tx9", "ATIVA")
        ]

    def test_without_txid_nothing_to_do(self):
        assert parse_pix_notices({"evento": "teste"}) == []


class TestParseCardNotice:
    def test_nested_status_object(self):
        notice = parse_card_notice({"data": {"charge_id": 42, "status": {"current": "paid"}}})
        assert notice == WebhookNotice("42", "paid")

    def test_flat_body(self):
        assert parse_card_notice({"charge_id": "c1", "status": "unpaid"}) == WebhookNotice(
            "c1", "unpaid"
        )

    def test_missing_charge_id(self):
        assert parse_card_notice({"data": {"status": "paid"}}) is None


class TestPayoutReference:
    def test_root_id_envio(self):
        assert payout_reference({"idEnvio": "P15", "status": "REALIZADO"}) == "P15"

    def test_nested_in_gn_extras(self):
        payload = {"pix": [{"gnExtras": {"idEnvio": "P7"}, "endToEndId": "E1"}]}
        assert payout_reference(payload) == "P7"

    def test_txid_means_collection_not_payout(self):
        assert payout_reference({"pix": [{"txid": "tx1", "gnExtras": {"idEnvio": "P7"}}]}) is None


class TestCanonicalWebhookRoute:
    @pytest.mark.parametrize("subpath", ["pix", "pix/", "pix//", "/pix", "pix/pix", "efi/pix", "PIX"])
    def test_pix_variants(self, subpath):
        assert canonical_webhook_route(subpath) == "pix"

    @pytest.mark.parametrize("subpath", ["card", "card/", "efi/card"])
    def test_card_variants(self, subpath):
        assert canonical_webhook_route(subpath) == "card"

    def test_payout(self):
        assert canonical_webhook_route("payout/pix") == "payout"

    @pytest.mark.parametrize("subpath", ["", "boleto", "pix/card", "efi"])
    def test_unknown(self, subpath):
        assert canonical_webhook_route(subpath) is None
