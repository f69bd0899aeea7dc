"""Tasks assíncronas do módulo core (despacho do outbox)."""

import structlog
from celery import shared_task

from modules.core.outbox import dispatch_event, pending_event_ids

logger = structlog.get_logger(__name__)


@shared_task(name="core.dispatch_outbox_event")
def dispatch_outbox_event(event_id: str) -> bool:
    """Executa os efeitos colaterais de um único evento do outbox."""
    return dispatch_event(event_id)


@shared_task(name="core.dispatch_pending_outbox")
def dispatch_pending_outbox(limit: int = 100) -> dict:
    """Varredura periódica: reprocessa eventos pendentes, falhos ou travados."""
    event_ids = pending_event_ids(limit)
    published = 0
    for event_id in event_ids:
        if dispatch_event(event_id):
            published += 1
    logger.info(
        "outbox.sweep_finished", candidates=len(event_ids), published=published
    )
    return {"candidates": len(event_ids), "published": published}
