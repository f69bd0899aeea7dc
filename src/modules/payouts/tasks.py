"""Tasks assíncronas de repasse."""

import structlog
from celery import shared_task
from django.utils import timezone

logger = structlog.get_logger(__name__)


@shared_task(name="payouts.trigger_due_card_payouts")
def trigger_due_card_payouts() -> dict:
    """Dispara os repasses de pedidos de cartão que já cumpriram o prazo de liquidação."""
    from modules.payouts.scheduling import CardPayoutScheduler

    return CardPayoutScheduler().run(now=timezone.now()).to_dict()


@shared_task(name="payouts.refresh_payout_status")
def refresh_payout_status(order_id: int) -> str:
    """Consulta o provedor sobre um envio ainda não confirmado."""
    from modules.payouts.reconciliation import PayoutStatusReconciler

    send_status = PayoutStatusReconciler().refresh(order_id)
    if send_status is None:
        return "skipped"
    logger.info("payout.status_refreshed", order_id=order_id, status=send_status.status)
    return send_status.status
