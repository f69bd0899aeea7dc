"""Outbox writer and dispatcher."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from modules.core import outbox
from modules.core.models import EventStatus, OutboxEvent
from modules.core.outbox import dispatch_event, pending_event_ids, record_event, register_handler

pytestmark = pytest.mark.unit


@pytest.fixture()
def handler():
    mock = MagicMock()
    previous = dict(outbox._handlers)
    register_handler("TestHappened", mock)
    yield mock
    outbox._handlers.clear()
    outbox._handlers.update(previous)


def test_record_event_enqueues_after_commit(django_capture_on_commit_callbacks):
    with patch("modules.core.tasks.dispatch_outbox_event.delay") as delay:
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            event = record_event("TestHappened", 7, {"aggregate_id": "7"}, topic="tests")
            delay.assert_not_called()

    assert len(callbacks) == 1
    delay.assert_called_once_with(str(event.id))
    assert event.aggregate_id == "7"
    assert event.status == EventStatus.PENDING


def test_dispatch_runs_handler_once(handler):
    event = record_event("TestHappened", 1, {"aggregate_id": "1"}, topic="tests")

    assert dispatch_event(str(event.id)) is True
    assert dispatch_event(str(event.id)) is False

    handler.assert_called_once_with({"aggregate_id": "1"})
    event.refresh_from_db()
    assert event.status == EventStatus.PUBLISHED


def test_handler_failure_is_recorded_and_retried(handler):
    handler.side_effect = [RuntimeError("smtp down"), None]
    event = record_event("TestHappened", 2, {"aggregate_id": "2"}, topic="tests")

    assert dispatch_event(str(event.id)) is False
    event.refresh_from_db()
    assert event.status == EventStatus.FAILED
    assert event.retry_count == 1
    assert "smtp down" in event.error_message
    assert str(event.id) in pending_event_ids()

    assert dispatch_event(str(event.id)) is True
    event.refresh_from_db()
    assert event.status == EventStatus.PUBLISHED


def test_event_without_handler_is_published():
    event = record_event("NobodyListens", 3, {}, topic="tests")
    assert dispatch_event(str(event.id)) is True
    assert OutboxEvent.objects.get(pk=event.pk).status == EventStatus.PUBLISHED


def test_dispatch_pending_task_sweeps(handler):
    from modules.core.tasks import dispatch_pending_outbox

    for aggregate in ("a", "b"):
        record_event("TestHappened", aggregate, {"aggregate_id": aggregate}, topic="tests")

    result = dispatch_pending_outbox.run()

    assert result == {"candidates": 2, "published": 2}
    assert handler.call_count == 2
