"""Order domain constants.

Defines status choices, final states and the transitions the
``OrderService`` is allowed to perform.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    NEW = "NEW", "Novo"
    WAITING = "WAITING", "Aguardando pagamento"
    CONFIRMED = "CONFIRMED", "Confirmado"
    PAID = "PAID", "Pago"
    REFUNDED = "REFUNDED", "Estornado"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED", "Estornado parcialmente"
    CANCELED = "CANCELED", "Cancelado"
    DECLINED = "DECLINED", "Recusado"
    UNPAID = "UNPAID", "Não pago"
    EXPIRED = "EXPIRED", "Expirado"


class PaymentMethod(models.TextChoices):
    PIX = "pix", "PIX"
    CARD = "card", "Cartão"


FINAL_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.REFUNDED,
        OrderStatus.PARTIALLY_REFUNDED,
        OrderStatus.CANCELED,
        OrderStatus.DECLINED,
        OrderStatus.EXPIRED,
    }
)

# CONFIRMED is not final for refunds, but re-entrant payment handlers
# must treat it as settled.
SETTLED_STATES: frozenset[str] = FINAL_STATES | {OrderStatus.CONFIRMED}

PAID_STATES: frozenset[str] = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.REFUNDED,
        OrderStatus.PARTIALLY_REFUNDED,
    }
)

# Statuses in which an unpaid order still holds its stock reservation.
HOLDING_STATUSES: tuple[str, ...] = (OrderStatus.WAITING, OrderStatus.UNPAID)

VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.NEW: {OrderStatus.WAITING, OrderStatus.CANCELED},
    OrderStatus.WAITING: {
        OrderStatus.CONFIRMED,
        OrderStatus.REFUNDED,
        OrderStatus.CANCELED,
        OrderStatus.DECLINED,
        OrderStatus.UNPAID,
        OrderStatus.EXPIRED,
    },
    OrderStatus.UNPAID: {
        OrderStatus.WAITING,
        OrderStatus.CANCELED,
        OrderStatus.EXPIRED,
    },
    OrderStatus.CONFIRMED: {OrderStatus.REFUNDED, OrderStatus.PARTIALLY_REFUNDED},
    OrderStatus.PARTIALLY_REFUNDED: {OrderStatus.REFUNDED},
    OrderStatus.PAID: set(),
    OrderStatus.REFUNDED: set(),
    OrderStatus.CANCELED: set(),
    OrderStatus.DECLINED: set(),
    OrderStatus.EXPIRED: set(),
}


def is_final(status: str) -> bool:
    """True for REFUNDED, PARTIALLY_REFUNDED, CANCELED, DECLINED, EXPIRED."""
    return status in FINAL_STATES


class StatusSource(models.TextChoices):
    """Who asked for a status change (recorded in history)."""

    CHECKOUT = "CHECKOUT", "Checkout"
    WEBHOOK = "WEBHOOK", "Webhook"
    POLLER = "POLLER", "Poller"
    SWEEP = "SWEEP", "Invalidator"
    ADMIN = "ADMIN", "Admin"
