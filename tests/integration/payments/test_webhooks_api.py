"""Provider webhooks: audit, routing and idempotent confirmation."""

import json
from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from modules.catalog.models import Book
from modules.core.models import EventStatus, OutboxEvent
from modules.notifications.constants import EmailKind
from modules.notifications.models import EmailLog
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order
from modules.payments.constants import WebhookProcessingStatus, WebhookProvider
from modules.payments.models import WebhookEvent
from modules.payouts.constants import PayoutStatus
from modules.payouts.models import Payout

pytestmark = pytest.mark.integration


def _post(client, path, body):
    raw = body if isinstance(body, str) else json.dumps(body)
    return client.post(path, data=raw, content_type="application/json")


def _pix_paid(order):
    return {"pix": [{"txid": order.txid, "endToEndId": "E0000000000001", "valor": "50.00"}]}


class TestRouting:
    @pytest.mark.parametrize("subpath", ["pix", "pix/", "pix//", "pix/pix", "efi/pix"])
    def test_pix_path_variants_are_accepted(self, api_client, make_order, subpath):
        order = make_order()
        response = _post(api_client, f"/api/webhooks/payment/{subpath}", _pix_paid(order))

        assert response.status_code == 200
        assert response.json()["handled"] == [order.txid]
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CONFIRMED

    def test_unknown_route_is_404(self, api_client):
        response = _post(api_client, "/api/webhooks/payment/boleto", {"txid": "x"})
        assert response.status_code == 404
        assert not WebhookEvent.objects.exists()

    def test_invalid_json_is_audited_and_acknowledged(self, api_client):
        response = _post(api_client, "/api/webhooks/payment/pix", "{not-json")

        assert response.status_code == 200
        assert response.json()["processing_status"] == WebhookProcessingStatus.INVALID_JSON
        event = WebhookEvent.objects.get()
        assert event.processing_status == WebhookProcessingStatus.INVALID_JSON
        assert event.raw_body == "{not-json"

    def test_body_without_reference_is_ignored(self, api_client):
        response = _post(api_client, "/api/webhooks/payment/pix", {"evento": "teste"})

        assert response.status_code == 200
        assert response.json()["processing_status"] == WebhookProcessingStatus.IGNORED
        assert WebhookEvent.objects.get().processing_status == WebhookProcessingStatus.IGNORED

    def test_unknown_txid_is_acknowledged(self, api_client):
        response = _post(
            api_client, "/api/webhooks/payment/pix", {"txid": "ghost", "status": "CONCLUIDA"}
        )
        assert response.status_code == 200
        assert response.json()["handled"] == []
        assert WebhookEvent.objects.get().reference == "ghost"


class TestPixConfirmation:
    def test_duplicate_delivery_has_single_effect(
        self, api_client, make_order, seller, django_capture_on_commit_callbacks
    ):
        order = make_order()
        with django_capture_on_commit_callbacks(execute=True):
            first = _post(api_client, "/api/webhooks/payment/pix", _pix_paid(order))
        with django_capture_on_commit_callbacks(execute=True):
            second = _post(api_client, "/api/webhooks/payment/pix", _pix_paid(order))

        assert first.json()["handled"] == [order.txid]
        assert second.json()["handled"] == []
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert order.paid is True

        assert WebhookEvent.objects.filter(provider=WebhookProvider.PIX).count() == 2
        paid_events = OutboxEvent.objects.filter(event_type="OrderPaid")
        assert paid_events.count() == 1
        assert paid_events.get().status == EventStatus.PUBLISHED

        payout = Payout.objects.get(order=order)
        assert payout.status == PayoutStatus.CONFIRMED
        assert payout.source == "PIX-WEBHOOK"

        client_emails = [m for m in mail.outbox if m.to == ["maria@example.com"]]
        seller_emails = [m for m in mail.outbox if m.to == [seller.email]]
        assert len(client_emails) == 1
        assert len(seller_emails) == 2
        assert set(EmailLog.objects.values_list("kind", flat=True)) == {
            EmailKind.ORDER_PAID_CLIENT,
            EmailKind.ORDER_PAID_SELLER,
            EmailKind.PAYOUT_CONFIRMED,
        }

    def test_status_field_at_root(self, api_client, make_order):
        order = make_order()
        _post(api_client, "/api/webhooks/payment/pix", {"txid": order.txid, "status": "CONCLUIDA"})
        assert Order.objects.get(pk=order.pk).paid is True

    def test_removed_collection_cancels_and_releases(self, api_client, make_order, book):
        order = make_order()
        _post(
            api_client,
            "/api/webhooks/payment/pix",
            {"txid": order.txid, "status": "REMOVIDA_PELO_USUARIO_RECEBEDOR"},
        )
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CANCELED
        assert Book.objects.get(pk=book.pk).stock == 10

    def test_late_payment_is_refunded_and_released_once(
        self, api_client, make_order, book, django_capture_on_commit_callbacks
    ):
        from modules.payments.invalidator import ReservationInvalidator

        order = make_order()
        Order.objects.filter(pk=order.pk).update(
            reserve_expires_at=timezone.now() - timedelta(seconds=5)
        )

        with django_capture_on_commit_callbacks(execute=True):
            _post(api_client, "/api/webhooks/payment/pix", _pix_paid(order))

        order.refresh_from_db()
        assert order.status == OrderStatus.REFUNDED
        assert order.paid is True
        assert not Payout.objects.exists()
        assert mail.outbox == []
        assert Book.objects.get(pk=book.pk).stock == 9

        first = ReservationInvalidator().run()
        second = ReservationInvalidator().run()
        assert first.late_payments_released == 1
        assert second.late_payments_released == 0
        assert Book.objects.get(pk=book.pk).stock == 10


class TestCardConfirmation:
    def test_paid_status_object(self, api_client, make_order, seller, django_capture_on_commit_callbacks):
        order = make_order(method=PaymentMethod.CARD)
        body = {"data": {"charge_id": order.charge_id, "status": {"current": "paid"}}}

        with django_capture_on_commit_callbacks(execute=True):
            response = _post(api_client, "/api/webhooks/payment/card", body)

        assert response.json()["handled"] == [order.charge_id]
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CONFIRMED
        assert not Payout.objects.exists()
        assert EmailLog.objects.filter(kind=EmailKind.CARD_PAYOUT_SCHEDULED).count() == 1

    def test_unpaid_keeps_reservation(self, api_client, make_order, book):
        order = make_order(method=PaymentMethod.CARD)
        _post(
            api_client,
            "/api/webhooks/payment/efi/card",
            {"data": {"charge_id": order.charge_id, "status": "unpaid"}},
        )
        order.refresh_from_db()
        assert order.status == OrderStatus.UNPAID
        assert order.stock_reserved is True
        assert Book.objects.get(pk=book.pk).stock == 9
