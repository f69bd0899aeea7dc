import logging

import pytest

from config.settings import mask_sensitive_data


class TestCorrelationIdInLogs:
    def test_checkout_logs_carry_request_id(self, client, caplog):
        custom_id = "checkout-log-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        found = any(custom_id in record.getMessage() for record in caplog.records)
        assert found, (
            f"correlation_id '{custom_id}' not found in log records: "
            f"{[r.getMessage() for r in caplog.records]}"
        )


class TestSensitiveDataMasking:
    @pytest.mark.parametrize(
        "key,value",
        [
            ("cpf", "123.456.789-09"),
            ("cpf", "12345678909"),
            ("cnpj", "12.345.678/0001-90"),
        ],
    )
    def test_documents_are_masked(self, key, value):
        result = mask_sensitive_data(None, None, {"event": "checkout.started", key: value})
        assert value not in result[key]
        assert "***MASKED***" in result[key]

    def test_card_payment_token_is_masked(self):
        event_dict = {"event": "card.charge", "body": "payment_token=tok_abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "tok_abc123xyz" not in result["body"]

    def test_gateway_credentials_are_masked(self):
        event_dict = {
            "event": "efi.oauth",
            "body": "client_secret: 's3cret123', authorization=Basic-xyz",
        }
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["body"]
        assert "Basic-xyz" not in result["body"]

    def test_non_sensitive_data_unchanged(self):
        event_dict = {"event": "order.created", "order_id": 42, "txid": "abc"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result == {"event": "order.created", "order_id": 42, "txid": "abc"}
