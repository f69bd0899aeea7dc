"""OrderService transitions against the database."""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from modules.catalog.exceptions import OutOfStock
from modules.catalog.models import Book
from modules.core.models import OutboxEvent
from modules.orders.constants import OrderStatus, PaymentMethod, StatusSource
from modules.orders.exceptions import InvalidOrderStatus, OrderNotFound
from modules.orders.models import Order, OrderStatusHistory
from modules.orders.services import ConfirmationOutcome

pytestmark = pytest.mark.unit


def _stock(book):
    return Book.objects.get(pk=book.pk).stock


def _lapse(order):
    Order.objects.filter(pk=order.pk).update(
        reserve_expires_at=timezone.now() - timedelta(seconds=1)
    )


class TestReserve:
    def test_opens_payment_window(self, make_order, book):
        order = make_order(quantity=3, ttl_seconds=300)

        assert order.status == OrderStatus.WAITING
        assert order.stock_reserved is True
        assert order.reserve_expires_at > timezone.now() + timedelta(seconds=290)
        assert _stock(book) == 7
        assert list(
            OrderStatusHistory.objects.filter(order=order).values_list("new_status", flat=True)
        ) == [OrderStatus.NEW, OrderStatus.WAITING]
        assert OutboxEvent.objects.filter(
            event_type="OrderReserved", aggregate_id=str(order.pk)
        ).exists()

    def test_out_of_stock_leaves_order_new(self, order_service, book):
        order = order_service.create_pending(
            {"first_name": "Ana", "email": "ana@example.com", "payment_method": PaymentMethod.PIX},
            [{"book_id": book.id, "title": book.title, "quantity": 11, "price": book.price}],
        )
        with pytest.raises(OutOfStock):
            order_service.reserve_and_mark_waiting(order, 300)

        assert _stock(book) == 10
        assert Order.objects.get(pk=order.pk).status == OrderStatus.NEW

        assert order_service.cancel_unreserved(order.pk, "Out of stock") is True
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CANCELED

    def test_second_reserve_rolls_back(self, make_order, order_service, book):
        order = make_order()
        with pytest.raises(InvalidOrderStatus):
            order_service.reserve_and_mark_waiting(order, 300)
        assert _stock(book) == 9


class TestConfirmPayment:
    def test_confirms_once(self, make_order, order_service):
        order = make_order()

        first = order_service.confirm_payment(txid=order.txid, source=StatusSource.WEBHOOK)
        second = order_service.confirm_payment(txid=order.txid, source=StatusSource.POLLER)

        assert first is ConfirmationOutcome.CONFIRMED
        assert second is ConfirmationOutcome.ALREADY_PAID
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert order.paid is True
        assert order.paid_at is not None
        events = OutboxEvent.objects.filter(event_type="OrderPaid", aggregate_id=str(order.pk))
        assert events.count() == 1
        assert events.get().topic == "payments"
        assert events.get().payload["reference"] == order.txid

    def test_card_reference(self, make_order, order_service):
        order = make_order(method=PaymentMethod.CARD)
        outcome = order_service.confirm_payment(charge_id=order.charge_id)
        assert outcome is ConfirmationOutcome.CONFIRMED

    def test_unknown_reference(self, order_service):
        assert order_service.confirm_payment(txid="nope") is ConfirmationOutcome.NOT_FOUND
        assert order_service.confirm_payment() is ConfirmationOutcome.NOT_FOUND

    def test_expired_order_is_not_confirmed(self, make_order, order_service):
        order = make_order()
        order_service.expire_reservation(order.pk)

        assert order_service.confirm_payment(txid=order.txid) is ConfirmationOutcome.NOT_WAITING
        order.refresh_from_db()
        assert order.status == OrderStatus.EXPIRED
        assert order.paid is False

    def test_late_payment_is_refunded_and_keeps_stock_for_sweep(
        self, make_order, order_service, book
    ):
        order = make_order(quantity=2)
        _lapse(order)

        outcome = order_service.confirm_payment(txid=order.txid)

        assert outcome is ConfirmationOutcome.LATE_PAYMENT
        order.refresh_from_db()
        assert order.status == OrderStatus.REFUNDED
        assert order.paid is True
        assert order.stock_reserved is True
        assert _stock(book) == 8
        assert OutboxEvent.objects.filter(event_type="LatePaymentReceived").count() == 1
        assert not OutboxEvent.objects.filter(event_type="OrderPaid").exists()

        assert order_service.release_lapsed_late_payment(order.pk) is True
        assert order_service.release_lapsed_late_payment(order.pk) is False
        assert _stock(book) == 10


class TestExpireReservation:
    def test_releases_stock_once(self, make_order, order_service, book):
        order = make_order(quantity=4)
        assert _stock(book) == 6

        assert order_service.expire_reservation(order.pk, reason="TTL") is True
        assert order_service.expire_reservation(order.pk, reason="TTL") is False

        order.refresh_from_db()
        assert order.status == OrderStatus.EXPIRED
        assert order.stock_reserved is False
        assert order.reserve_expires_at is None
        assert _stock(book) == 10
        assert OutboxEvent.objects.filter(event_type="OrderExpired").count() == 1

    def test_paid_order_is_left_alone(self, make_order, order_service, book):
        order = make_order()
        order_service.confirm_payment(txid=order.txid)

        assert order_service.expire_reservation(order.pk) is False
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CONFIRMED
        assert _stock(book) == 9

    def test_unknown_order(self, order_service):
        assert order_service.expire_reservation(999999) is False


class TestApplyProviderStatus:
    def test_cancel_releases_stock(self, make_order, order_service, book):
        order = make_order()
        assert order_service.apply_provider_status(OrderStatus.CANCELED, txid=order.txid) is True
        assert Order.objects.get(pk=order.pk).status == OrderStatus.CANCELED
        assert _stock(book) == 10

    def test_unpaid_keeps_reservation(self, make_order, order_service, book):
        order = make_order(method=PaymentMethod.CARD)
        assert order_service.apply_provider_status(
            OrderStatus.UNPAID, charge_id=order.charge_id
        ) is True
        order.refresh_from_db()
        assert order.status == OrderStatus.UNPAID
        assert order.stock_reserved is True
        assert _stock(book) == 9

    def test_invalid_transition_is_noop(self, make_order, order_service):
        order = make_order()
        order_service.confirm_payment(txid=order.txid)
        assert order_service.apply_provider_status(OrderStatus.CANCELED, txid=order.txid) is False
        order.refresh_from_db()
        assert order.status == OrderStatus.CONFIRMED
        assert order.paid is True

    def test_final_order_is_noop(self, make_order, order_service):
        order = make_order()
        order_service.expire_reservation(order.pk)
        assert order_service.apply_provider_status(OrderStatus.CANCELED, txid=order.txid) is False

    def test_refund_of_paid_order_keeps_paid_flag(self, make_order, order_service):
        order = make_order(total=Decimal("50.00"))
        order_service.confirm_payment(txid=order.txid)
        assert order_service.apply_provider_status(OrderStatus.REFUNDED, txid=order.txid) is True
        order.refresh_from_db()
        assert order.status == OrderStatus.REFUNDED
        assert order.paid is True


def test_get_order(make_order, order_service):
    order = make_order()
    assert order_service.get_order(order.pk).pk == order.pk
    with pytest.raises(OrderNotFound):
        order_service.get_order(999999)
