"""Tasks assíncronas do módulo de pagamentos (polling PIX e varredura de reservas)."""

import structlog
from celery import shared_task
from django.utils import timezone

logger = structlog.get_logger(__name__)


@shared_task(name="payments.poll_pix_status")
def poll_pix_status(order_id: int, txid: str) -> str:
    """Consulta o status de uma cobrança PIX e reconcilia o pedido.

    Retorna ``stopped`` quando não há mais o que observar, ``error`` em
    falha do gateway (a próxima tentativa agendada segue normalmente) ou
    o resultado da reconciliação.
    """
    from modules.orders.constants import OrderStatus, PaymentMethod, StatusSource
    from modules.orders.models import Order
    from modules.payments.confirmation import PaymentConfirmationService
    from modules.payments.exceptions import GatewayError
    from modules.payments.gateways import get_pix_gateway

    log = logger.bind(order_id=order_id, txid=txid)
    order = (
        Order.objects.filter(pk=order_id)
        .only("status", "paid", "reserve_expires_at")
        .first()
    )
    if order is None or order.paid or order.status != OrderStatus.WAITING:
        log.info("pix_watcher.stopped", status=getattr(order, "status", None))
        return "stopped"

    try:
        raw_status = get_pix_gateway().get_status(txid)
    except GatewayError as exc:
        log.warning("pix_watcher.poll_failed", error=str(exc), status_code=exc.status_code)
        return "error"

    result = PaymentConfirmationService().handle_status(
        txid, raw_status, PaymentMethod.PIX, StatusSource.POLLER
    )
    log.info(
        "pix_watcher.polled",
        raw_status=raw_status,
        paid=result.paid,
        outcome=result.outcome.value if result.outcome else None,
    )
    if result.outcome is not None:
        return result.outcome.value
    return "waiting"


@shared_task(name="payments.invalidate_expired_reservations")
def invalidate_expired_reservations() -> dict:
    """Varredura periódica de reservas vencidas (intervalo ``RESERVATION_SWEEP_INTERVAL_SECONDS``)."""
    from modules.payments.invalidator import ReservationInvalidator

    report = ReservationInvalidator().run(now=timezone.now())
    return report.to_dict()
