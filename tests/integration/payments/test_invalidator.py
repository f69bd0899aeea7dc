"""Reservation sweep and PIX poller against the stub gateways."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from django.utils import timezone

from modules.catalog.models import Book
from modules.orders.constants import OrderStatus, PaymentMethod
from modules.orders.models import Order
from modules.payments.exceptions import GatewayError
from modules.payments.gateways.stub import StubCardGateway, StubPixGateway
from modules.payments.invalidator import ReservationInvalidator
from modules.payments.tasks import poll_pix_status
from modules.payouts.models import Payout

pytestmark = pytest.mark.integration


def _lapse(order, seconds=1):
    Order.objects.filter(pk=order.pk).update(
        reserve_expires_at=timezone.now() - timedelta(seconds=seconds)
    )


class TestReservationInvalidator:
    def test_expires_lapsed_orders_and_cancels_at_gateway(self, make_order, book):
        pix = make_order(quantity=2)
        card = make_order(method=PaymentMethod.CARD)
        live = make_order()
        _lapse(pix)
        _lapse(card)

        report = ReservationInvalidator().run()

        assert report.scanned == 2
        assert report.expired == 2
        assert report.cancel_failures == 0
        assert Order.objects.get(pk=pix.pk).status == OrderStatus.EXPIRED
        assert Order.objects.get(pk=card.pk).status == OrderStatus.EXPIRED
        assert Order.objects.get(pk=live.pk).status == OrderStatus.WAITING
        assert StubPixGateway().get_status(pix.txid) == "REMOVIDA_PELO_USUARIO_RECEBEDOR"
        assert StubCardGateway().get_status(card.charge_id) == "canceled"
        assert Book.objects.get(pk=book.pk).stock == 9

    def test_cancel_failure_does_not_stop_the_sweep(self, make_order, book):
        first = make_order()
        second = make_order()
        _lapse(first, 10)
        _lapse(second, 5)
        pix = MagicMock()
        pix.cancel.side_effect = [GatewayError("timeout"), False]

        report = ReservationInvalidator(pix_gateway=pix).run()

        assert report.expired == 2
        assert report.cancel_failures == 2
        assert Book.objects.get(pk=book.pk).stock == 10

    def test_unpaid_card_order_expires(self, make_order, order_service, book):
        order = make_order(method=PaymentMethod.CARD)
        order_service.apply_provider_status(OrderStatus.UNPAID, charge_id=order.charge_id)
        _lapse(order)

        ReservationInvalidator().run()

        assert Order.objects.get(pk=order.pk).status == OrderStatus.EXPIRED
        assert Book.objects.get(pk=book.pk).stock == 10

    def test_sweep_is_idempotent(self, make_order, book):
        order = make_order()
        _lapse(order)

        ReservationInvalidator().run()
        report = ReservationInvalidator().run()

        assert report.scanned == 0
        assert Book.objects.get(pk=book.pk).stock == 10


class TestPixPoller:
    def test_poll_confirms_paid_collection(self, make_order):
        order = make_order()
        StubPixGateway.mark_paid(order.txid)

        assert poll_pix_status(order.pk, order.txid) == "CONFIRMED"
        assert Order.objects.get(pk=order.pk).paid is True

    def test_poll_payout_records_poller_origin(
        self, make_order, seller, django_capture_on_commit_callbacks
    ):
        order = make_order()
        StubPixGateway.mark_paid(order.txid)

        with django_capture_on_commit_callbacks(execute=True):
            poll_pix_status(order.pk, order.txid)

        assert Payout.objects.get(order=order).source == "PIX-POLLER"

    def test_poll_stops_once_settled(self, make_order):
        order = make_order()
        StubPixGateway.mark_paid(order.txid)
        poll_pix_status(order.pk, order.txid)

        assert poll_pix_status(order.pk, order.txid) == "stopped"

    def test_poll_waits_while_active(self, make_order):
        order = make_order()
        StubPixGateway().create_collection(order.txid, order.total, "Pedido", 300)

        assert poll_pix_status(order.pk, order.txid) == "waiting"
        assert Order.objects.get(pk=order.pk).status == OrderStatus.WAITING

    def test_poll_unknown_order(self):
        assert poll_pix_status(999999, "ghost") == "stopped"
