import json
import uuid

import pytest

from modules.core.models import OutboxEvent

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        parsed = uuid.UUID(request_id, version=4)
        assert str(parsed) == request_id

    def test_webhook_request_id_reaches_outbox(self, api_client, make_order):
        order = make_order()
        body = {"pix": [{"txid": order.txid, "endToEndId": "E123"}]}

        api_client.post(
            "/api/webhooks/payment/pix",
            data=json.dumps(body),
            content_type="application/json",
            HTTP_X_REQUEST_ID="webhook-correlation-789",
        )

        event = OutboxEvent.objects.get(event_type="OrderPaid")
        assert event.correlation_id == "webhook-correlation-789"
