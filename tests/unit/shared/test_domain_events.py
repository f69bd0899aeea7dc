"""Unit tests for domain events and the in-memory bus."""

from __future__ import annotations

import pytest

from modules.orders.events import OrderPaid
from modules.orders.models import Order
from shared.infrastructure.bus import InMemoryEventBus

pytestmark = pytest.mark.unit


def test_order_registers_and_clears_domain_events():
    order = Order(pk=12, first_name="Maria", email="maria@example.com")
    assert order.domain_events == []

    event = OrderPaid(aggregate_id=order.pk, payment_method="pix", total="10.00")
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderPaid"
    assert event.aggregate_id == "12"

    order.clear_domain_events()
    assert order.domain_events == []


def test_payload_is_json_safe():
    payload = OrderPaid(aggregate_id=3, reference="tx3").to_payload()
    assert payload["aggregate_id"] == "3"
    assert payload["reference"] == "tx3"
    assert isinstance(payload["event_id"], str)
    assert isinstance(payload["occurred_on"], str)


class _Recorder:
    def __init__(self):
        self.events = []

    def handle(self, event):
        self.events.append(event)


class _Broken:
    def handle(self, event):
        raise RuntimeError("boom")


def test_bus_isolates_failing_handlers():
    bus = InMemoryEventBus()
    recorder = _Recorder()
    bus.subscribe(OrderPaid, _Broken())
    bus.subscribe(OrderPaid, recorder)
    bus.subscribe(OrderPaid, recorder)

    event = OrderPaid(aggregate_id=1)
    bus.publish(event)

    assert recorder.events == [event]
