from decimal import Decimal

import pytest

from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.catalog.models import Book
from modules.payments.gateways.stub import StubCardGateway, StubPixGateway
from modules.payouts.models import Seller


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _isolated_state():
    """Throttle counters live in the cache; stub gateways keep a registry."""
    cache.clear()
    StubPixGateway.registry.clear()
    StubCardGateway.registry.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


@pytest.fixture()
def admin_client():
    """APIClient force-authenticated as a staff user."""
    client = APIClient()
    user = get_user_model().objects.create_user(
        username="operator", password="testpass123", is_staff=True
    )
    client.force_authenticate(user=user)
    return client


@pytest.fixture()
def book():
    return Book.objects.create(
        id="livro-1", title="Memórias Póstumas", price=Decimal("50.00"), stock=10
    )


@pytest.fixture()
def seller():
    return Seller.objects.create(
        name="Autor", email="autor@example.com", pix_key="autor@example.com"
    )


@pytest.fixture()
def customer_payload():
    return {
        "first_name": "Maria",
        "last_name": "Silva",
        "email": "maria@example.com",
        "cpf": "123.456.789-09",
        "phone": "(11) 98888-7777",
        "cep": "01001-000",
        "street": "Praça da Sé",
        "number": "100",
        "district": "Sé",
        "city": "São Paulo",
        "state": "SP",
    }


@pytest.fixture()
def order_service():
    from modules.orders.services import build_order_service

    return build_order_service()


@pytest.fixture()
def make_order(book, order_service):
    """Build an order that already holds stock and waits for payment."""
    from modules.orders.constants import PaymentMethod

    def _make(
        method=PaymentMethod.PIX,
        quantity=1,
        ttl_seconds=300,
        reference=None,
        total=None,
    ):
        order = order_service.create_pending(
            {
                "first_name": "Maria",
                "last_name": "Silva",
                "email": "maria@example.com",
                "payment_method": method,
                "total": total if total is not None else book.price * quantity,
            },
            [
                {
                    "book_id": book.id,
                    "title": book.title,
                    "quantity": quantity,
                    "price": book.price,
                }
            ],
        )
        order_service.reserve_and_mark_waiting(order, ttl_seconds)
        if method == PaymentMethod.PIX:
            order_service.attach_pix_charge(
                order.pk, reference or f"tx{order.pk:0>20}", "qr-code", "qr-base64"
            )
        else:
            order_service.attach_card_charge(order.pk, reference or f"ch{order.pk}")
        order.refresh_from_db()
        return order

    return _make
