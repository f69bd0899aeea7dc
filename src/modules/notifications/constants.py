from django.db import models


class EmailKind(models.TextChoices):
    ORDER_PAID_CLIENT = "ORDER_PAID_CLIENT", "Pagamento confirmado (cliente)"
    ORDER_PAID_SELLER = "ORDER_PAID_SELLER", "Novo pedido pago (vendedor)"
    PAYOUT_CONFIRMED = "PAYOUT_CONFIRMED", "Repasse confirmado"
    PAYOUT_FAILED = "PAYOUT_FAILED", "Repasse falhou"
    CARD_PAYOUT_SCHEDULED = "CARD_PAYOUT_SCHEDULED", "Repasse de cartão agendado"


class EmailStatus(models.TextChoices):
    SENT = "SENT", "Enviado"
    FAILED = "FAILED", "Falhou"
