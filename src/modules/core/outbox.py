"""Outbox writer and dispatcher.

``record_event`` is called by services inside their transaction;
``dispatch_event`` is called by the Celery worker after commit.
Handlers are registered per ``event_type`` from ``AppConfig.ready()``.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Callable, Dict

import structlog
from django.conf import settings
from django.db import transaction

from modules.core.middleware import correlation_id_var
from modules.core.models import OutboxEvent

logger = structlog.get_logger(__name__)

OutboxHandler = Callable[[Dict[str, Any]], None]

_handlers: Dict[str, OutboxHandler] = {}


def register_handler(event_type: str, handler: OutboxHandler) -> None:
    """Bind the side-effect handler for ``event_type`` (last one wins)."""
    _handlers[event_type] = handler


def get_handler(event_type: str) -> OutboxHandler | None:
    return _handlers.get(event_type)


def record_event(
    event_type: str,
    aggregate_id: Any,
    payload: Dict[str, Any],
    topic: str,
) -> OutboxEvent:
    """Persist an outbox row in the current transaction.

    The dispatch task is enqueued only once the surrounding transaction
    commits; a rollback discards both the row and the enqueue.
    """
    event = OutboxEvent.objects.create(
        event_type=event_type,
        aggregate_id=str(aggregate_id),
        payload=payload,
        topic=topic,
        correlation_id=correlation_id_var.get(),
    )
    event_id = str(event.id)

    def _enqueue() -> None:
        from modules.core.tasks import dispatch_outbox_event

        dispatch_outbox_event.delay(event_id)

    transaction.on_commit(_enqueue)
    logger.info(
        "outbox.recorded",
        event_id=event_id,
        event_type=event_type,
        aggregate_id=str(aggregate_id),
    )
    return event


def _stale_after() -> timedelta:
    return timedelta(seconds=settings.OUTBOX_STALE_AFTER_SECONDS)


def dispatch_event(event_id: str) -> bool:
    """Claim and run a single outbox event.

    Returns ``True`` when this call ran the handler successfully,
    ``False`` when the event was already claimed/published or the
    handler failed (the failure is persisted for the sweep to retry).
    """
    log = logger.bind(event_id=event_id)

    if not OutboxEvent.claim(event_id, _stale_after()):
        log.info("outbox.claim_skipped")
        return False

    event = OutboxEvent.objects.get(pk=event_id)
    structlog.contextvars.bind_contextvars(
        correlation_id=event.correlation_id or event_id
    )
    log = log.bind(event_type=event.event_type, aggregate_id=event.aggregate_id)

    handler = get_handler(event.event_type)
    if handler is None:
        log.info("outbox.no_handler")
        event.mark_as_published()
        return True

    try:
        handler(event.payload)
    except Exception as exc:
        log.exception("outbox.dispatch_failed")
        event.mark_as_failed(str(exc))
        return False

    event.mark_as_published()
    log.info("outbox.published")
    return True


def pending_event_ids(limit: int = 100) -> list[str]:
    """Ids of events the periodic sweep should redispatch."""
    qs = OutboxEvent.objects.dispatchable(
        max_retries=settings.OUTBOX_MAX_RETRIES,
        stale_after=_stale_after(),
    ).values_list("id", flat=True)[:limit]
    return [str(event_id) for event_id in qs]
