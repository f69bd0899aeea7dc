"""Integration tests for standardized error responses."""

import pytest

pytestmark = pytest.mark.integration


def _assert_envelope(data):
    assert "type" in data
    assert isinstance(data["errors"], list)
    assert data["errors"]
    assert "code" in data["errors"][0]
    assert "detail" in data["errors"][0]


class TestStandardizedErrors:
    def test_auth_error_has_standard_format(self, api_client):
        response = api_client.get("/api/v1/orders/")
        assert response.status_code == 401
        _assert_envelope(response.json())
        assert response.json()["type"] == "client_error"

    def test_malformed_json_has_standard_format(self, api_client):
        response = api_client.post(
            "/api/checkout/pix", data="{", content_type="application/json"
        )
        assert response.status_code == 400
        _assert_envelope(response.json())

    def test_field_errors_carry_attr(self, api_client):
        response = api_client.post("/api/checkout/pix", {"items": []}, format="json")
        assert response.status_code == 400
        data = response.json()
        assert data["type"] == "validation_error"
        attrs = {error["attr"] for error in data["errors"]}
        assert {"first_name", "email", "items"} <= attrs

    def test_not_found_has_standard_format(self, api_client):
        response = api_client.get("/api/checkout/orders/999999/status")
        assert response.status_code == 404
        _assert_envelope(response.json())
