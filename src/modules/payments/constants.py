"""Payment status vocabularies and audit enums."""

from django.db import models

from modules.orders.constants import OrderStatus

# Provider statuses meaning "money received" (compared case-insensitively).
PIX_PAID_STATUSES: frozenset[str] = frozenset(
    {
        "CONCLUIDA",
        "CONCLUÍDA",
        "LIQUIDADO",
        "LIQUIDADA",
        "ATIVA-RECEBIDA",
        "COMPLETED",
        "PAID",
        "CONFIRMADA",
        "CONFIRMADO",
    }
)

CARD_PAID_STATUSES: frozenset[str] = frozenset(
    {"PAID", "APPROVED", "CAPTURED", "CONFIRMED"}
)

# Secondary (non-paid) provider statuses -> order status.
PROVIDER_STATUS_MAP: dict[str, str] = {
    "waiting": OrderStatus.WAITING,
    "new": OrderStatus.WAITING,
    "ativa": OrderStatus.WAITING,
    "unpaid": OrderStatus.UNPAID,
    "refunded": OrderStatus.REFUNDED,
    "devolvida": OrderStatus.REFUNDED,
    "partially_refunded": OrderStatus.PARTIALLY_REFUNDED,
    "canceled": OrderStatus.CANCELED,
    "cancelled": OrderStatus.CANCELED,
    "removida_pelo_usuario_recebedor": OrderStatus.CANCELED,
    "removida_pelo_psp": OrderStatus.CANCELED,
    "declined": OrderStatus.DECLINED,
    "expired": OrderStatus.EXPIRED,
}


class WebhookProvider(models.TextChoices):
    PIX = "PIX", "PIX"
    CARD = "CARD", "Cartão"
    PAYOUT = "PAYOUT", "Repasse"


class WebhookProcessingStatus(models.TextChoices):
    RECEIVED = "RECEIVED", "Recebido"
    IGNORED = "IGNORED", "Ignorado"
    INVALID_JSON = "INVALID_JSON", "JSON inválido"
